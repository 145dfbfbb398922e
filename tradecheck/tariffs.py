"""Import duty and VAT estimates for goods exported from India.

Rates are indicative tables, not a tariff schedule: an importing country has a
default tariff, optional per-category special rates, a standard VAT/sales tax
and, for the US and Canada, state/province overrides of that tax.
"""

from typing import Dict, List, Optional

from .schemas import TariffEstimate, TariffRequest

CATEGORIES = [
    "electronics",
    "textiles",
    "pharmaceuticals",
    "jewelry",
    "automotive",
    "agricultural",
    "chemicals",
]

# code, name, units of local currency per 1 USD
CURRENCIES: Dict[str, tuple] = {
    "US": ("USD", "US Dollar", 1.0),
    "UK": ("GBP", "British Pound", 0.774),
    "DE": ("EUR", "Euro", 0.923),
    "FR": ("EUR", "Euro", 0.923),
    "IT": ("EUR", "Euro", 0.923),
    "CA": ("CAD", "Canadian Dollar", 1.438),
    "AU": ("AUD", "Australian Dollar", 1.586),
    "JP": ("JPY", "Japanese Yen", 147.6),
    "CN": ("CNY", "Chinese Yuan", 7.228),
    "AE": ("AED", "UAE Dirham", 3.672),
    "SG": ("SGD", "Singapore Dollar", 1.331),
    "KR": ("KRW", "South Korean Won", 1451.7),
    "SA": ("SAR", "Saudi Riyal", 3.749),
}


def _special(textiles, electronics, pharmaceuticals, jewelry, automotive, agricultural, chemicals):
    return dict(zip(CATEGORIES, (
        textiles, electronics, pharmaceuticals, jewelry, automotive, agricultural, chemicals,
    )))


TAX_RATES: Dict[str, Dict] = {
    "US": {
        "standard": 0.0,
        "import_tariff": 0.10,
        "special_rates": _special(0.16, 0.06, 0.02, 0.08, 0.05, 0.08, 0.04),
        "regions": {
            "CA": 0.0725, "NY": 0.04, "TX": 0.0625, "FL": 0.06, "IL": 0.0625,
            "PA": 0.06, "OH": 0.0575, "GA": 0.04, "NC": 0.0475, "MI": 0.06,
            "NJ": 0.0625, "VA": 0.043, "WA": 0.065, "MA": 0.0625, "AZ": 0.056,
        },
    },
    "UK": {"standard": 0.20, "import_tariff": 0.12,
           "special_rates": _special(0.12, 0.06, 0.0, 0.08, 0.10, 0.09, 0.06)},
    "DE": {"standard": 0.19, "import_tariff": 0.09,
           "special_rates": _special(0.12, 0.03, 0.0, 0.08, 0.10, 0.09, 0.06)},
    "FR": {"standard": 0.20, "import_tariff": 0.09,
           "special_rates": _special(0.12, 0.04, 0.0, 0.08, 0.10, 0.09, 0.06)},
    "IT": {"standard": 0.22, "import_tariff": 0.09,
           "special_rates": _special(0.12, 0.04, 0.0, 0.08, 0.10, 0.09, 0.06)},
    "CA": {
        "standard": 0.05,
        "import_tariff": 0.08,
        "special_rates": _special(0.10, 0.05, 0.02, 0.06, 0.09, 0.05, 0.04),
        "regions": {
            "ON": 0.08, "QC": 0.09975, "BC": 0.07, "AB": 0.0,
            "MB": 0.07, "SK": 0.06, "NS": 0.10, "NB": 0.10,
        },
    },
    "AU": {"standard": 0.10, "import_tariff": 0.05,
           "special_rates": _special(0.10, 0.05, 0.0, 0.05, 0.05, 0.0, 0.05)},
    "JP": {"standard": 0.10, "import_tariff": 0.06,
           "special_rates": _special(0.08, 0.0, 0.0, 0.05, 0.0, 0.12, 0.04)},
    "CN": {"standard": 0.13, "import_tariff": 0.13,
           "special_rates": _special(0.10, 0.15, 0.08, 0.14, 0.15, 0.12, 0.10)},
    "AE": {"standard": 0.05, "import_tariff": 0.05,
           "special_rates": _special(0.05, 0.03, 0.01, 0.05, 0.05, 0.02, 0.04)},
    "SG": {"standard": 0.08, "import_tariff": 0.01,
           "special_rates": _special(0.0, 0.0, 0.0, 0.02, 0.0, 0.0, 0.0)},
    "KR": {"standard": 0.10, "import_tariff": 0.07,
           "special_rates": _special(0.10, 0.05, 0.02, 0.08, 0.08, 0.15, 0.06)},
    "SA": {"standard": 0.15, "import_tariff": 0.05,
           "special_rates": _special(0.08, 0.07, 0.02, 0.10, 0.12, 0.06, 0.08)},
}


class UnknownCountry(KeyError):
    pass


def supported_countries() -> List[Dict[str, object]]:
    out = []
    for code in sorted(TAX_RATES):
        cur_code, cur_name, _ = CURRENCIES.get(code, ("USD", "US Dollar", 1.0))
        out.append({
            "code": code,
            "currency": cur_code,
            "currency_name": cur_name,
            "regions": sorted(TAX_RATES[code].get("regions", {})),
        })
    return out


def tariff_rate(country: str, category: Optional[str] = None) -> float:
    rates = TAX_RATES.get((country or "").upper())
    if rates is None:
        raise UnknownCountry(country)
    special = rates.get("special_rates") or {}
    if category and category.lower() in special:
        return special[category.lower()]
    return rates["import_tariff"]


def tax_rate(country: str, region: Optional[str] = None) -> float:
    rates = TAX_RATES.get((country or "").upper())
    if rates is None:
        raise UnknownCountry(country)
    regions = rates.get("regions") or {}
    if region and region.upper() in regions:
        return regions[region.upper()]
    return rates["standard"]


def estimate(req: TariffRequest) -> TariffEstimate:
    """Duty on value, VAT on value + duty."""
    country = req.importing_country.upper()
    duty_rate = tariff_rate(country, req.category)
    vat_rate = tax_rate(country, req.region)

    duty = req.value * duty_rate
    vat = (req.value + duty) * vat_rate
    total = req.value + duty + vat
    cur_code, _, per_usd = CURRENCIES.get(country, ("USD", "US Dollar", 1.0))

    return TariffEstimate(
        import_tariff=duty_rate,
        value_added_tax=vat_rate,
        total_tax_rate=duty_rate + vat_rate + duty_rate * vat_rate,
        estimated_duty=round(duty, 2),
        estimated_vat=round(vat, 2),
        estimated_total_cost=round(total, 2),
        local_currency=cur_code,
        local_total_cost=round(total * per_usd, 2),
    )

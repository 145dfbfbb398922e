from tradecheck.config import Settings


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon")
    monkeypatch.setenv("BATCH_CHUNK_SIZE", "25")
    monkeypatch.setenv("LLM_MAX_ATTEMPTS", "5")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    s = Settings(_env_file=None)
    assert s.store_configured is True
    assert s.llm_configured is False
    assert s.batch_chunk_size == 25
    assert s.llm_max_attempts == 5
    assert s.gemini_model == "gemini-1.5-pro"


def test_defaults_without_credentials(monkeypatch):
    for name in ("SUPABASE_URL", "SUPABASE_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.store_configured is False
    assert s.batch_chunk_size == 100

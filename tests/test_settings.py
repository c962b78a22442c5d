import pytest

from songstudio.errors import ConfigurationMissing
from songstudio.services.settings import SettingsResolver, mask_secret, upsert_settings


def test_db_value_wins_over_config(app_ctx):
    resolver = SettingsResolver({"SUNO_API_KEY": "from-env", "AI_MODEL": "gpt-4o-mini"})
    assert resolver.get_setting("suno_api_key") == "from-env"

    upsert_settings({"suno_api_key": "from-db"}, actor_id=None)

    assert resolver.get_setting("suno_api_key") == "from-db"
    assert resolver.get_setting("ai_model") == "gpt-4o-mini"


def test_empty_db_value_falls_back_to_config(app_ctx):
    upsert_settings({"ai_provider": ""}, actor_id=None)
    assert SettingsResolver({"AI_PROVIDER": "gemini"}).get_setting("ai_provider") == "gemini"


def test_generation_config(app_ctx):
    cfg = SettingsResolver({
        "SUNO_API_KEY": "k",
        "CREDITS_PER_SONG": 2,
        "APP_BASE_URL": "https://portal.example/",
    }).generation_config()

    assert cfg.credits_per_song == 2
    assert cfg.callback_url("/api/suno/callback") == "https://portal.example/api/suno/callback"


def test_generation_config_bad_price_defaults_to_one(app_ctx):
    upsert_settings({"credits_per_song": "dos"}, actor_id=None)
    assert SettingsResolver({"SUNO_API_KEY": "k"}).generation_config().credits_per_song == 1


def test_generation_config_zero_price_is_allowed(app_ctx):
    upsert_settings({"credits_per_song": 0}, actor_id=None)
    assert SettingsResolver({"SUNO_API_KEY": "k"}).generation_config().credits_per_song == 0


def test_generation_config_requires_api_key(app_ctx):
    with pytest.raises(ConfigurationMissing):
        SettingsResolver({}).generation_config()


@pytest.mark.parametrize("value,expected", [
    (None, ""),
    ("short", "*****"),
    ("1234567890", "1234**7890"),
])
def test_mask_secret(value, expected):
    assert mask_secret(value) == expected

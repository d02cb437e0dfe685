import pytest

from statement_ingest import DEFAULT_SETTINGS, IngestSettings


def test_defaults():
    s = IngestSettings()
    assert s == DEFAULT_SETTINGS
    assert s.profile_threshold == 50
    assert s.duplicate_threshold == 0.7
    assert s.use_classifier is False


def test_from_env_reads_prefixed_variables():
    env = {
        "STATEMENT_INGEST_PROFILE_THRESHOLD": "60",
        "STATEMENT_INGEST_DUPLICATE_THRESHOLD": "0.8",
        "STATEMENT_INGEST_USE_CLASSIFIER": "yes",
        "STATEMENT_INGEST_CLASSIFIER_MODEL": " gpt-test ",
        "UNRELATED": "ignored",
    }
    s = IngestSettings.from_env(env)
    assert s.profile_threshold == 60
    assert s.duplicate_threshold == 0.8
    assert s.use_classifier is True
    assert s.classifier_model == "gpt-test"


def test_from_env_uses_process_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STATEMENT_INGEST_AMOUNT_TOLERANCE", "2.5")
    assert IngestSettings.from_env().amount_tolerance == 2.5


def test_overrides_win_over_environment():
    env = {"STATEMENT_INGEST_USE_CLASSIFIER": "1"}
    assert IngestSettings.from_env(env, use_classifier=False).use_classifier is False


@pytest.mark.parametrize(
    ("key", "raw"),
    [
        ("STATEMENT_INGEST_PROFILE_THRESHOLD", "high"),
        ("STATEMENT_INGEST_USE_CLASSIFIER", "maybe"),
        ("STATEMENT_INGEST_CLASSIFIER_TIMEOUT", "soon"),
    ],
)
def test_malformed_values_name_the_variable(key, raw):
    with pytest.raises(ValueError, match=key):
        IngestSettings.from_env({key: raw})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"duplicate_threshold": 1.5},
        {"fuzzy_threshold": -0.1},
        {"classifier_timeout": 0},
        {"header_scan_lines": 0},
        {"description_max_length": 0},
    ],
)
def test_out_of_range_values_are_rejected(kwargs):
    with pytest.raises(ValueError):
        IngestSettings(**kwargs)


def test_with_overrides_returns_new_instance():
    s = DEFAULT_SETTINGS.with_overrides(date_window_days=3)
    assert s.date_window_days == 3
    assert DEFAULT_SETTINGS.date_window_days == 1

from medialib_backend import config as cfg
from medialib_backend.utils import parse_bool, split_csv


def test_env_int_parses_and_clamps(monkeypatch) -> None:
    monkeypatch.setenv("MEDIALIB_TEST_INT", "12")
    assert cfg._env_int(3, "MEDIALIB_TEST_INT", min_value=1, max_value=64) == 12
    monkeypatch.setenv("MEDIALIB_TEST_INT", "999")
    assert cfg._env_int(3, "MEDIALIB_TEST_INT", min_value=1, max_value=64) == 64
    monkeypatch.setenv("MEDIALIB_TEST_INT", "0")
    assert cfg._env_int(3, "MEDIALIB_TEST_INT", min_value=1) == 1
    monkeypatch.setenv("MEDIALIB_TEST_INT", "many")
    assert cfg._env_int(3, "MEDIALIB_TEST_INT") == 3
    monkeypatch.delenv("MEDIALIB_TEST_INT")
    assert cfg._env_int(3, "MEDIALIB_TEST_INT") == 3


def test_env_float_and_fallback_names(monkeypatch) -> None:
    monkeypatch.delenv("MEDIALIB_TEST_PRIMARY", raising=False)
    monkeypatch.setenv("MEDIALIB_TEST_LEGACY", "2.5")
    assert cfg._env_float(1.0, "MEDIALIB_TEST_PRIMARY", "MEDIALIB_TEST_LEGACY") == 2.5
    monkeypatch.setenv("MEDIALIB_TEST_PRIMARY", "  ")
    assert cfg._env_float(1.0, "MEDIALIB_TEST_PRIMARY", "MEDIALIB_TEST_LEGACY") == 2.5
    monkeypatch.setenv("MEDIALIB_TEST_PRIMARY", "-4")
    assert cfg._env_float(1.0, "MEDIALIB_TEST_PRIMARY", min_value=0.0) == 0.0


def test_env_bool(monkeypatch) -> None:
    monkeypatch.setenv("MEDIALIB_TEST_FLAG", "yes")
    assert cfg._env_bool(False, "MEDIALIB_TEST_FLAG") is True
    monkeypatch.setenv("MEDIALIB_TEST_FLAG", "maybe")
    assert cfg._env_bool(True, "MEDIALIB_TEST_FLAG") is True
    monkeypatch.delenv("MEDIALIB_TEST_FLAG")
    assert cfg._env_bool(False, "MEDIALIB_TEST_FLAG") is False


def test_content_origin_resolution(monkeypatch) -> None:
    for name in ("MEDIALIB_CONTENT_ORIGIN", "MEDIALIB_CONTENT_ENV", "MEDIALIB_PAGE_ORIGIN"):
        monkeypatch.delenv(name, raising=False)
    assert cfg._resolve_content_origin() == "https://content.da.live"

    monkeypatch.setenv("MEDIALIB_CONTENT_ENV", "stage")
    assert cfg._resolve_content_origin() == "https://stage-content.da.live"
    monkeypatch.setenv("MEDIALIB_PAGE_ORIGIN", "1")
    assert cfg._resolve_content_origin() == "https://stage-content.da.page"

    monkeypatch.setenv("MEDIALIB_CONTENT_ENV", "mars")
    monkeypatch.delenv("MEDIALIB_PAGE_ORIGIN")
    assert cfg._resolve_content_origin() == "https://content.da.live"

    monkeypatch.setenv("MEDIALIB_CONTENT_ORIGIN", "http://localhost:3000/")
    assert cfg._resolve_content_origin() == "http://localhost:3000"


def test_parse_bool_and_split_csv() -> None:
    assert parse_bool("On") is True
    assert parse_bool("disabled", True) is False
    assert parse_bool(None, True) is True
    assert parse_bool(0) is False
    assert split_csv(" a, ,b ,") == ["a", "b"]
    assert split_csv(["x", " "]) == ["x"]
    assert split_csv(None) == []

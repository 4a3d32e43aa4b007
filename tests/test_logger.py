import logging

from prizedesk.logger import ComponentFileHandler, PhoneMaskFilter


def test_component_file_and_phone_masking(tmp_path):
    handler = ComponentFileHandler(tmp_path)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler.addFilter(PhoneMaskFilter())

    log = logging.getLogger("webapp.auth.test")
    log.propagate = False
    log.setLevel(logging.INFO)
    log.addHandler(handler)
    try:
        log.info("Token for %s accepted (award %d)", "27821234567", 42)
        log.info("Local number %s", "0821234567")
    finally:
        log.removeHandler(handler)
        handler.close()

    lines = (tmp_path / "webapp.log").read_text(encoding="utf-8").splitlines()
    assert lines == [
        "webapp.auth.test: Token for 278***4567 accepted (award 42)",
        "webapp.auth.test: Local number 082***4567",
    ]


def test_component_name():
    assert ComponentFileHandler.component("redemptions") == "redemptions"
    assert ComponentFileHandler.component("webapp.database") == "webapp"
    assert ComponentFileHandler.component(None) == "root"

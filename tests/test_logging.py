"""setup_logging handler wiring."""

from __future__ import annotations

import logging

from modules.utils import logging as logging_utils


def test_setup_logging_writes_to_log_dir(config, monkeypatch):
    captured = {}
    monkeypatch.setattr(logging_utils.logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
    urllib3 = logging.getLogger("urllib3")
    monkeypatch.setattr(urllib3, "level", urllib3.level)

    logger = logging_utils.setup_logging(config)

    assert logger.name == "ai_hub"
    assert config.log_dir.is_dir()
    file_handler = captured["handlers"][0]
    assert file_handler.baseFilename == str(config.log_dir / "application.log")
    file_handler.close()
    assert urllib3.level == logging.WARNING

from datetime import timezone
import json
import logging

from pydantic import BaseModel

from ledger_agent.utilities import compact_json, decode_bytes, format_json, now_utc, suppress_logs


class TestCompactJson:
    def test_keeps_unicode(self):
        assert compact_json({"name": "午餐", "money": 50}) == '{"name": "午餐", "money": 50}'

    def test_pydantic_model(self):
        class Flow(BaseModel):
            name: str
            money: float

        assert json.loads(compact_json(Flow(name="午餐", money=50))) == {"name": "午餐", "money": 50.0}

    def test_unserializable_falls_back_to_str(self):
        class Opaque:
            def __str__(self):
                return "opaque"

        assert compact_json({"value": Opaque()}) == '{"value": "opaque"}'

    def test_none(self):
        assert compact_json(None) == "null"


class TestDecodeBytes:
    def test_utf8(self):
        assert decode_bytes("记账".encode("utf-8")) == "记账"

    def test_declared_charset(self):
        assert decode_bytes("记账".encode("gbk"), "gbk") == "记账"

    def test_undeclared_non_utf8_never_raises(self):
        raw = "这是一段用于编码检测的中文文本，包含足够多的字符。".encode("gb18030") * 4
        assert isinstance(decode_bytes(raw), str)


class TestFormatJson:
    def test_empty(self):
        assert format_json({}) == "{}"
        assert format_json([]) == "[]"

    def test_nested(self):
        formatted = format_json({"role": "user", "items": [1, None, True]})
        assert '"role": "user"' in formatted
        assert "null" in formatted
        assert "true" in formatted


def test_now_utc_is_aware():
    assert now_utc().tzinfo == timezone.utc


def test_suppress_logs(caplog):
    logger = logging.getLogger("ledger_agent.test")
    with caplog.at_level(logging.INFO, logger="ledger_agent.test"):
        with suppress_logs(logger):
            logger.info("hidden")
        logger.info("visible")

    assert "hidden" not in caplog.text
    assert "visible" in caplog.text

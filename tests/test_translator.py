"""Tests for the translator module."""

import asyncio
import logging
from types import SimpleNamespace

import pytest

from typegen.config import AlibabaCloudCredentials
from typegen.errors import ConfigError, TranslationError
from typegen.translator import AlibabaTranslator, is_ascii_label, translate_labels


class FakeTranslator:
    """Dictionary-backed translator that records concurrency."""

    def __init__(self, table, fail=()):
        self.table = table
        self.fail = set(fail)
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def translate(self, text):
        self.calls.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if text in self.fail:
                raise TranslationError(text, "service unavailable")
            return self.table.get(text)
        finally:
            self.active -= 1


class TestIsAsciiLabel:

    def test_ascii(self):
        assert is_ascii_label("User Profile 2")

    def test_cjk(self):
        assert not is_ascii_label("商店")

    def test_punctuation(self):
        assert not is_ascii_label("a/b")


class TestTranslateLabels:

    async def test_no_translator(self):
        names = await translate_labels(["Pets", "商店"])
        assert names == {"Pets": "pets", "商店": "商店"}

    async def test_ascii_labels_skip_translator(self):
        translator = FakeTranslator({"商店": "Store"})
        names = await translate_labels(["User Profile", "商店"], translator)
        assert translator.calls == ["商店"]
        assert names == {"User Profile": "userProfile", "商店": "store"}

    async def test_order_follows_input(self):
        translator = FakeTranslator({"订单": "Orders", "用户": "Users"})
        names = await translate_labels(["用户", "Pets", "订单"], translator)
        assert list(names) == ["用户", "Pets", "订单"]

    async def test_duplicates_translated_once(self):
        translator = FakeTranslator({"商店": "Store"})
        await translate_labels(["商店", "商店"], translator)
        assert translator.calls == ["商店"]

    async def test_batches_bound_concurrency(self):
        labels = [f"标签{i}" for i in range(12)]
        translator = FakeTranslator({label: f"Tag {i}" for i, label in enumerate(labels)})
        names = await translate_labels(labels, translator, batch_size=5)
        assert translator.max_active <= 5
        assert len(translator.calls) == 12
        assert names["标签3"] == "tag3"

    async def test_failure_falls_back(self, caplog):
        translator = FakeTranslator({"订单": "Orders"}, fail={"商店"})
        with caplog.at_level(logging.WARNING):
            names = await translate_labels(["商店", "订单"], translator)
        assert names == {"商店": "商店", "订单": "orders"}
        assert "Translation failed" in caplog.text

    async def test_empty_result_falls_back(self):
        translator = FakeTranslator({})
        names = await translate_labels(["商店"], translator)
        assert names == {"商店": "商店"}

    async def test_translation_sanitized(self):
        translator = FakeTranslator({"商店": "Store Management!"})
        names = await translate_labels(["商店"], translator)
        assert names["商店"] == "storeManagement"


class FakeAlimtClient:

    def __init__(self, translated=None, error=None):
        self.translated = translated
        self.error = error
        self.requests = []

    async def translate_general_with_options_async(self, request, runtime):
        self.requests.append(request)
        if self.error:
            raise self.error
        return SimpleNamespace(body=SimpleNamespace(data=SimpleNamespace(translated=self.translated)))


CREDENTIALS = AlibabaCloudCredentials(access_key_id="id", access_key_secret="secret")


class TestAlibabaTranslator:

    def test_incomplete_credentials(self):
        with pytest.raises(ConfigError) as exc_info:
            AlibabaTranslator(AlibabaCloudCredentials(access_key_id="id"))
        assert exc_info.value.field == "alibabaCloud"

    async def test_translate(self):
        pytest.importorskip("alibabacloud_alimt20181012")
        client = FakeAlimtClient(translated="Store")
        translator = AlibabaTranslator(CREDENTIALS, client=client)
        assert await translator.translate("商店") == "Store"
        assert client.requests[0].source_text == "商店"
        assert client.requests[0].target_language == "en"

    async def test_service_error(self):
        pytest.importorskip("alibabacloud_alimt20181012")
        translator = AlibabaTranslator(CREDENTIALS, client=FakeAlimtClient(error=RuntimeError("throttled")))
        with pytest.raises(TranslationError, match="throttled"):
            await translator.translate("商店")

    async def test_empty_result(self):
        pytest.importorskip("alibabacloud_alimt20181012")
        translator = AlibabaTranslator(CREDENTIALS, client=FakeAlimtClient(translated=""))
        with pytest.raises(TranslationError):
            await translator.translate("商店")

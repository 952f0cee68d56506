"""Translate tag labels into English module identifiers.

Handles:
- ASCII labels, which are used as-is without a remote call
- Batched concurrent translation (TRANSLATE_BATCH_SIZE calls at a time)
- Per-label failure isolation: a failed call falls back to module_name(label)

The Alibaba Cloud SDK is an optional extra and only imported when an
AlibabaTranslator is actually created.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable, Protocol

from .config import AlibabaCloudCredentials
from .errors import ConfigError, TranslationError
from .naming import module_name

logger = logging.getLogger(__name__)

TRANSLATE_BATCH_SIZE = 5

ALIBABA_MT_ENDPOINT = "mt.cn-hangzhou.aliyuncs.com"

_ASCII_LABEL_RE = re.compile(r"^[A-Za-z0-9\s]+$")


class Translator(Protocol):
    async def translate(self, text: str) -> str | None:
        ...


class AlibabaTranslator:
    """Machine translation (zh -> en) through Alibaba Cloud TranslateGeneral."""

    def __init__(
        self,
        credentials: AlibabaCloudCredentials,
        *,
        source_language: str = "zh",
        target_language: str = "en",
        client: Any = None,
    ) -> None:
        if not credentials.complete:
            raise ConfigError(
                "alibabaCloud.accessKeyId and alibabaCloud.accessKeySecret are required "
                "for translation",
                field="alibabaCloud",
            )
        self.source_language = source_language
        self.target_language = target_language
        self._client = client or self._create_client(credentials)

    @staticmethod
    def _create_client(credentials: AlibabaCloudCredentials) -> Any:
        try:
            from alibabacloud_alimt20181012.client import Client
            from alibabacloud_tea_openapi import models as open_api_models
        except ImportError as exc:
            raise ConfigError(
                "Translation needs the Alibaba Cloud SDK. "
                "Install it with: pip install 'apifox-typegen[translate]'",
                field="alibabaCloud",
            ) from exc

        config = open_api_models.Config(
            access_key_id=credentials.access_key_id,
            access_key_secret=credentials.access_key_secret,
        )
        config.endpoint = ALIBABA_MT_ENDPOINT
        return Client(config)

    async def translate(self, text: str) -> str | None:
        from alibabacloud_alimt20181012 import models as alimt_models
        from alibabacloud_tea_util import models as util_models

        request = alimt_models.TranslateGeneralRequest(
            format_type="text",
            source_language=self.source_language,
            target_language=self.target_language,
            source_text=text,
            scene="general",
        )
        try:
            response = await self._client.translate_general_with_options_async(
                request, util_models.RuntimeOptions()
            )
        except Exception as exc:
            raise TranslationError(text, str(exc)) from exc

        data = getattr(getattr(response, "body", None), "data", None)
        translated = getattr(data, "translated", None)
        if not translated:
            raise TranslationError(text, "empty translation result")
        return translated


def is_ascii_label(label: str) -> bool:
    return bool(_ASCII_LABEL_RE.match(label))


async def _translate_one(label: str, translator: Translator) -> str:
    translated = await translator.translate(label)
    if not translated:
        raise TranslationError(label, "empty translation result")
    return module_name(translated)


async def translate_labels(
    labels: Iterable[str],
    translator: Translator | None = None,
    batch_size: int = TRANSLATE_BATCH_SIZE,
) -> dict[str, str]:
    """Map each label to an English module identifier.

    Never raises for a single label: failures log a warning and fall back to
    the sanitized label.
    """
    unique = list(dict.fromkeys(labels))
    result: dict[str, str] = {}
    pending: list[str] = []
    for label in unique:
        if translator is None or is_ascii_label(label):
            result[label] = module_name(label)
        else:
            pending.append(label)

    batch_size = max(1, batch_size)
    for start in range(0, len(pending), batch_size):
        batch = pending[start:start + batch_size]
        outcomes = await asyncio.gather(
            *(_translate_one(label, translator) for label in batch),
            return_exceptions=True,
        )
        for label, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning("Translation failed for %r: %s", label, outcome)
                result[label] = module_name(label)
            else:
                logger.debug("Translated %r -> %s", label, outcome)
                result[label] = outcome

    return {label: result[label] for label in unique}

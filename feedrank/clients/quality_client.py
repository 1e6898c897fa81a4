"""
Quality scoring client.

The quality model is an external service that rates content independently
of the viewer. One batched request per feed page:

  POST {quality_service_url}/predict
  { "posts": [{ postId, contentLength, hasMedia, hashtagCount, mentionCount,
                author: { authorId, authorFollowersCount, authorFollowingCount,
                          authorTweetCount, authorIsVerified } }] }

  → { "rankedPosts": [{ postId, qualityScore }] }

If the service is slow or down the client returns an empty mapping, which
callers read as "no quality signal": the feed still ranks on
personalization alone.
"""
import asyncio
import logging
import time
from typing import Optional, Sequence

import httpx

from feedrank.config import settings
from feedrank.schemas import QualityFeatures, QualityPredictionResponse
from feedrank.telemetry import QUALITY_ERRORS_TOTAL, QUALITY_LATENCY

logger = logging.getLogger(__name__)


class QualityScoringUnavailable(RuntimeError):
    """The client was used without a live HTTP connection pool."""


class QualityScoringClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.quality_service_url
        self.timeout = timeout if timeout is not None else settings.quality_timeout_seconds
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def _predict(self, payload: dict) -> QualityPredictionResponse:
        resp = await self._http.post(settings.quality_predict_path, json=payload)
        resp.raise_for_status()
        return QualityPredictionResponse.model_validate(resp.json())

    async def get_quality_scores(
        self, features: Sequence[QualityFeatures]
    ) -> dict[str, float]:
        """
        Score a page of candidates. Returns ``{post_id: quality_score}``.

        Empty input returns immediately without a network call. Timeouts,
        transport errors, error statuses and malformed bodies are logged and
        turned into an empty mapping.
        """
        if not features:
            return {}

        if self._http is None:
            raise QualityScoringUnavailable("QualityScoringClient.start() was not called")

        payload = {"posts": [f.model_dump(mode="json", by_alias=True) for f in features]}
        logger.info("Requesting quality scores for %d posts", len(features))

        t0 = time.perf_counter()
        try:
            # httpx times each phase separately; bound the whole exchange
            body = await asyncio.wait_for(self._predict(payload), self.timeout)
        except Exception as exc:
            logger.warning(
                "Quality service unavailable: %r — ranking without quality signal", exc
            )
            QUALITY_ERRORS_TOTAL.inc()
            return {}
        finally:
            QUALITY_LATENCY.observe(time.perf_counter() - t0)

        scores = {p.post_id: p.quality_score for p in body.ranked_posts}
        logger.info("Received %d quality scores", len(scores))
        return scores


# Singleton
quality_client = QualityScoringClient()

"""ArcGIS REST query building and fetching.

The service is queried for the features intersecting the current map
bounding box. A query whose envelope matches the previous one is not sent
again, so repeated map-move events over the same view cost nothing.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from loguru import logger

from esri_import.errors import ServiceFetchError
from esri_import.esri_json import load_collection

WGS84 = 4326


@dataclass(frozen=True)
class BBox:
    """Map bounding box in degrees."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_list(cls, values) -> "BBox":
        """Build from [min_x, min_y, max_x, max_y]."""
        if len(values) != 4:
            raise ValueError(f"Bounding box needs 4 values, got {len(values)}")
        return cls(*(float(v) for v in values))

    def envelope(self, precision: int = 6, wkid: int = WGS84) -> str:
        """The ESRI envelope JSON used as the query geometry."""
        return json.dumps({
            "xmin": f"{self.min_x:.{precision}f}",
            "ymin": f"{self.min_y:.{precision}f}",
            "xmax": f"{self.max_x:.{precision}f}",
            "ymax": f"{self.max_y:.{precision}f}",
            "spatialReference": {"wkid": wkid},
        }, separators=(",", ":"))


def build_query_url(
    base_url: str,
    bbox: BBox,
    out_sr: int = WGS84,
    precision: int = 6,
) -> str:
    """Add output, format and spatial filter parameters to a query URL.

    Parameters already present in ``base_url`` win. A URL that already
    carries ``spatialRel`` keeps its own spatial query and gets no envelope.
    """
    parts = urlsplit(base_url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    present = {key for key, _ in params}

    if "outSR" not in present:
        params.append(("outSR", str(out_sr)))
    if "f" not in present:
        params.append(("f", "json"))
    if "spatialRel" not in present:
        params.extend([
            ("geometry", bbox.envelope(precision, WGS84)),
            ("geometryType", "esriGeometryEnvelope"),
            ("spatialRel", "esriSpatialRelIntersects"),
            ("inSR", str(WGS84)),
        ])
    return urlunsplit(parts._replace(query=urlencode(params)))


def parse_response(text: str) -> dict:
    """Decode a service response into a GeoJSON FeatureCollection.

    Raises:
        ServiceFetchError: If the body is not JSON or is an ArcGIS error.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ServiceFetchError(f"Service returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ServiceFetchError("Service returned a non-object JSON document")
    if "error" in data:
        err = data["error"] or {}
        raise ServiceFetchError(
            f"Service error {err.get('code', '?')}: {err.get('message', 'unknown')}"
        )
    return load_collection(data)


class ServiceQuery:
    """Fetches features from one ArcGIS feature service layer.

    Request handlers and the debounce timer thread share one instance, so
    the remembered envelope is only read and written under ``_lock``.
    """

    def __init__(
        self,
        url: str,
        out_sr: int = WGS84,
        precision: int = 6,
        timeout: float = 10.0,
        user_agent: str = "esri-import/0.1.0",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.out_sr = out_sr
        self.precision = precision
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport
        self.last_envelope: str | None = None
        self._lock = threading.Lock()

    def _claim(self, bbox: BBox, force: bool) -> str | None:
        """Return the URL to fetch, or None when the bounds are unchanged."""
        envelope = bbox.envelope(self.precision)
        with self._lock:
            if not force and envelope == self.last_envelope:
                return None
            self.last_envelope = envelope
        return build_query_url(self.url, bbox, self.out_sr, self.precision)

    def _parse(self, text: str) -> dict:
        try:
            return parse_response(text)
        except ServiceFetchError as e:
            logger.warning(f"Esri service response rejected: {e}")
            self.reset()
            raise

    def fetch(self, bbox: BBox, force: bool = False) -> dict | None:
        """Query the service for ``bbox``.

        Any failure forgets the envelope, so the same bounds are retried.

        Returns:
            A GeoJSON FeatureCollection, or None if the bounds match the
            previous query.

        Raises:
            ServiceFetchError: On HTTP failure or a bad response body.
        """
        url = self._claim(bbox, force)
        if url is None:
            return None
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.get(url, headers={"User-Agent": self.user_agent})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Esri service URL did not load: {e}")
            self.reset()
            raise ServiceFetchError(f"Service request failed: {e}") from e
        return self._parse(resp.text)

    async def fetch_async(self, bbox: BBox, force: bool = False) -> dict | None:
        """Async variant of fetch() for use inside request handlers."""
        url = self._claim(bbox, force)
        if url is None:
            return None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.get(url, headers={"User-Agent": self.user_agent})
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning(f"Esri service URL did not load: {e}")
                self.reset()
                raise ServiceFetchError(f"Service request failed: {e}") from e
        return self._parse(resp.text)

    def reset(self) -> None:
        """Forget the last envelope so the next fetch always runs."""
        with self._lock:
            self.last_envelope = None

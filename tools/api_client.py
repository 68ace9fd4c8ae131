"""
MedTracker API Client
Async client for the MedTracker REST API with per-query stale windows
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx


logger = logging.getLogger(__name__)


# Seconds a cached response stays fresh, per query family
STALE_TIMES: Dict[str, float] = {
    "auth": 5 * 60,
    "medications": 5 * 60,
    "today_logs": 30,
    "logs": 60,
    "history": 60,
    "adherence": 60,
    "vital_signs": 5 * 60,
    "appointments": 2 * 60,
    "tests": 2 * 60,
    "prescriptions": 2 * 60,
    "notifications": 30,
}

# Query families made stale by each kind of mutation
DOSE_FAMILIES = ("today_logs", "logs", "history", "adherence", "notifications")
MEDICATION_FAMILIES = ("medications",) + DOSE_FAMILIES


class MedTrackApiError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, message: Any):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def medical_queries_enabled(user: Optional[Dict[str, Any]], effective_patient_id: Optional[int], is_patient_selected: bool) -> bool:
    """
    Whether patient-scoped queries may run for the current session

    Patients always see their own data, caregivers once an effective
    patient exists, everyone else only after picking a patient.
    """
    if not user:
        return False
    profile_type = user.get("profile_type")
    if profile_type == "patient":
        return True
    if profile_type == "caregiver":
        return effective_patient_id is not None
    return bool(is_patient_selected and effective_patient_id is not None)


@dataclass
class CacheEntry:
    data: Any
    stored_at: float


class QueryCache:
    """In-memory cache of GET responses grouped by query family"""

    def __init__(self, stale_times: Optional[Dict[str, float]] = None, clock: Callable[[], float] = time.monotonic):
        self._stale_times = dict(stale_times or STALE_TIMES)
        self._clock = clock
        self._cache: Dict[str, Dict[str, CacheEntry]] = {}

    @staticmethod
    def make_key(path: str, params: Optional[Dict[str, Any]], patient_id: Optional[int]) -> str:
        """Generate cache key"""
        param_str = json.dumps(params or {}, sort_keys=True, default=str)
        return hashlib.md5(f"{patient_id}:{path}:{param_str}".encode()).hexdigest()

    def get(self, family: str, key: str) -> Optional[Any]:
        """Cached data while still fresh, None otherwise"""
        entries = self._cache.get(family, {})
        entry = entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at < self._stale_times.get(family, 0):
            return entry.data
        del entries[key]
        return None

    def set(self, family: str, key: str, data: Any):
        self._cache.setdefault(family, {})[key] = CacheEntry(data=data, stored_at=self._clock())

    def invalidate(self, families: Iterable[str]):
        for family in families:
            self._cache.pop(family, None)

    def clear(self):
        """Clear cache"""
        self._cache.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._cache.values())


class MedTrackClient:
    """
    Client for the MedTracker REST API

    Usage:
        client = MedTrackClient("http://localhost:8000")
        await client.login("ana@example.com", "secret")
        logs = await client.get_today_logs()
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        patient_id: Optional[int] = None,
        api_prefix: str = "/api",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.token = token
        self.patient_id = patient_id
        self.cache = cache if cache is not None else QueryCache()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._inflight: Dict[str, asyncio.Future] = {}

    # ==================== TRANSPORT ====================

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url + self.api_prefix,
                timeout=30.0,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MedTrackClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.patient_id is not None:
            headers["X-Patient-Id"] = str(self.patient_id)
        return headers

    async def _send(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, payload: Any = None) -> Any:
        client = await self._get_client()
        response = await client.request(method, path, params=params, json=payload, headers=self._headers())
        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("message", body.get("detail", body)) if isinstance(body, dict) else body
            except ValueError:
                message = response.text
            logger.warning(f"{method} {path} failed with {response.status_code}: {message}")
            raise MedTrackApiError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _query(self, family: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET through the cache; concurrent identical requests share one call"""
        key = QueryCache.make_key(path, params, self.patient_id)
        cached = self.cache.get(family, key)
        if cached is not None:
            return cached

        pending = self._inflight.get(key)
        if pending is not None:
            return await pending

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            data = await self._send("GET", path, params=params)
            self.cache.set(family, key, data)
            future.set_result(data)
            return data
        except Exception as e:
            future.set_exception(e)
            # Retrieved so an unawaited future does not log a warning
            future.exception()
            raise
        finally:
            self._inflight.pop(key, None)

    async def _mutate(self, method: str, path: str, payload: Any = None, invalidates: Iterable[str] = ()) -> Any:
        data = await self._send(method, path, payload=payload)
        self.cache.invalidate(invalidates)
        return data

    def select_patient(self, patient_id: Optional[int]):
        """Switch the effective patient sent as X-Patient-Id"""
        self.patient_id = patient_id

    # ==================== AUTH ====================

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._send("POST", "/auth/login", payload={"email": email, "password": password})
        self.token = data["token"]
        self.cache.clear()
        return data

    async def register(self, **payload) -> Dict[str, Any]:
        data = await self._send("POST", "/auth/register", payload=payload)
        self.token = data["token"]
        self.cache.clear()
        return data

    def logout(self):
        self.token = None
        self.patient_id = None
        self.cache.clear()

    async def me(self) -> Dict[str, Any]:
        return await self._query("auth", "/auth/me")

    async def get_patients(self) -> List[Dict[str, Any]]:
        return await self._query("auth", "/caregiver/patients")

    async def use_share_code(self, share_code: str) -> Dict[str, Any]:
        return await self._mutate("POST", "/caregiver/use-share-code", {"share_code": share_code}, invalidates=("auth",))

    async def generate_share_code(self) -> Dict[str, Any]:
        return await self._mutate("POST", "/patient/generate-share-code", invalidates=("auth",))

    # ==================== MEDICATIONS ====================

    async def get_medications(self, active_only: bool = False) -> List[Dict[str, Any]]:
        return await self._query("medications", "/medications", {"active_only": active_only})

    async def add_medication(self, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", "/medications", payload, invalidates=MEDICATION_FAMILIES)

    async def update_medication(self, medication_id: int, **payload) -> Dict[str, Any]:
        return await self._mutate("PUT", f"/medications/{medication_id}", payload, invalidates=MEDICATION_FAMILIES)

    async def delete_medication(self, medication_id: int) -> None:
        return await self._mutate("DELETE", f"/medications/{medication_id}", invalidates=MEDICATION_FAMILIES)

    async def inactivate_medication(self, medication_id: int) -> Dict[str, Any]:
        return await self._mutate("POST", f"/medications/{medication_id}/inactivate", invalidates=MEDICATION_FAMILIES)

    async def reactivate_medication(self, medication_id: int) -> Dict[str, Any]:
        return await self._mutate("POST", f"/medications/{medication_id}/reactivate", invalidates=MEDICATION_FAMILIES)

    async def has_taken_logs(self, medication_id: int) -> bool:
        data = await self._send("GET", f"/medications/{medication_id}/has-taken-logs")
        return bool(data["has_taken_logs"])

    # ==================== DOSES ====================

    async def get_today_logs(self) -> List[Dict[str, Any]]:
        return await self._query("today_logs", "/medication-logs/today")

    async def get_logs(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in {"start_date": start_date, "end_date": end_date}.items() if v is not None}
        return await self._query("logs", "/medication-logs", params)

    async def confirm_taken(self, log_id: int, actual_date_time: Optional[str] = None, delay_reason: Optional[str] = None) -> Dict[str, Any]:
        payload = {"status": "taken", "actual_date_time": actual_date_time, "delay_reason": delay_reason}
        return await self._mutate("PUT", f"/medication-logs/{log_id}", payload, invalidates=DOSE_FAMILIES)

    async def get_history(self) -> List[Dict[str, Any]]:
        return await self._query("history", "/medication-history")

    async def create_history(self, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", "/medication-history", payload, invalidates=DOSE_FAMILIES)

    async def get_weekly_adherence(self) -> Dict[str, Any]:
        return await self._query("adherence", "/adherence/weekly")

    # ==================== HEALTH RECORDS ====================

    async def get_vital_signs(self, vital_type: str) -> List[Dict[str, Any]]:
        return await self._query("vital_signs", f"/vital-signs/{vital_type}")

    async def add_vital_sign(self, vital_type: str, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", f"/vital-signs/{vital_type}", payload, invalidates=("vital_signs",))

    async def get_appointments(self) -> List[Dict[str, Any]]:
        return await self._query("appointments", "/appointments")

    async def add_appointment(self, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", "/appointments", payload, invalidates=("appointments",))

    async def get_tests(self) -> List[Dict[str, Any]]:
        return await self._query("tests", "/tests")

    async def add_test(self, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", "/tests", payload, invalidates=("tests",))

    async def get_prescriptions(self) -> List[Dict[str, Any]]:
        return await self._query("prescriptions", "/prescriptions")

    async def add_prescription(self, **payload) -> Dict[str, Any]:
        return await self._mutate("POST", "/prescriptions", payload, invalidates=("prescriptions",))

    # ==================== NOTIFICATIONS ====================

    async def get_notifications(self, limit: int = 50, offset: int = 0, unread_only: bool = False) -> Dict[str, Any]:
        params = {"limit": limit, "offset": offset, "unread_only": unread_only}
        return await self._query("notifications", "/notifications", params)

    async def mark_notification_read(self, notification_id: int) -> Dict[str, Any]:
        return await self._mutate("PUT", f"/notifications/{notification_id}/read", invalidates=("notifications",))

    async def mark_all_read(self) -> Dict[str, Any]:
        return await self._mutate("PUT", "/notifications/mark-all-read", invalidates=("notifications",))

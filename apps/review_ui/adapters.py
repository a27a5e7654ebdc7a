from typing import Any, Dict, List, Mapping, Optional

import requests

from apps.review_ui.domain import ReviewCard, ReviewOutcome


class ApiAdapter:
    """Talks to the workflow API on behalf of one reviewer."""

    def __init__(
        self,
        api_url: str,
        reviewer_id: str,
        role: str = "qa",
        session: Optional[requests.Session] = None,
        timeout_s: int = 15,
    ):
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.headers = {"X-User-Id": reviewer_id, "X-User-Role": role}

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        r = self.session.get(f"{self.api_url}{path}", params=params, headers=self.headers, timeout=self.timeout_s)
        r.raise_for_status()
        return r.json()

    def get_queue(self) -> List[ReviewCard]:
        return [ReviewCard.from_api(d) for d in self._get("/qa-queue")]

    def next_card(self, after_id: Optional[str] = None) -> Optional[ReviewCard]:
        params = {"after_id": after_id} if after_id else None
        data = self._get("/qa-queue/next", params=params)
        if data.get("exhausted"):
            return None
        return ReviewCard.from_api(data["item"])

    def decide(
        self,
        card: ReviewCard,
        decision: str,
        checklist: Optional[Mapping[str, bool]] = None,
        reason: Optional[str] = None,
    ) -> ReviewOutcome:
        payload = {
            "decision": decision,
            "checklist": dict(checklist or {}),
            "reason": reason,
            "expected_version": card.version,
        }
        r = self.session.post(
            f"{self.api_url}/items/{card.id}/review",
            json=payload,
            headers=self.headers,
            timeout=self.timeout_s,
        )
        if r.status_code >= 400:
            # conflict / illegal transition / validation: show the API's explanation
            try:
                detail = r.json().get("detail", r.text)
            except ValueError:
                detail = r.text
            return ReviewOutcome(item_id=card.id, status="error", quality_score=None, error=str(detail))

        d = r.json()
        return ReviewOutcome(item_id=d["id"], status=d["status"], quality_score=d.get("quality_score"))

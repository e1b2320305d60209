"""
Cliente HTTP de la API.

El token se adjunta en cada request desde la instancia; nada de interceptar
globalmente las llamadas.

    client = PharosClient("http://127.0.0.1:8000")
    client.login("ana@example.com", "secret")
    for tx in client.pending_transactions():
        client.confirm_transaction(tx["id"], account_id=1)
"""
import os
from typing import Any, Dict, List, Optional

import requests

DEFAULT_API_URL = os.getenv("PHAROS_API_URL", "http://127.0.0.1:8000")


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class PharosClient:
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        token: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, **kwargs) -> Any:
        resp = self.session.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=self.timeout,
            **kwargs,
        )
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise ApiError(resp.status_code, detail)
        if not resp.content:
            return None
        return resp.json()

    # -------------------------
    # Auth
    # -------------------------
    def login(self, email: str, password: str) -> str:
        out = self.request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = out["accessToken"]
        return self.token

    # -------------------------
    # Ledger
    # -------------------------
    def accounts(self) -> List[dict]:
        return self.request("GET", "/api/accounts")

    def categories(self) -> List[dict]:
        return self.request("GET", "/api/categories")

    def create_transaction(self, payload: dict) -> dict:
        return self.request("POST", "/api/transactions", json=payload)

    # -------------------------
    # Recurrences
    # -------------------------
    def recurrences(self) -> List[dict]:
        return self.request("GET", "/api/recurrences")

    def create_recurrence(self, payload: dict) -> dict:
        return self.request("POST", "/api/recurrences", json=payload)

    def update_recurrence(self, recurrence_id: int, fields: dict) -> dict:
        return self.request("PUT", f"/api/recurrences/{recurrence_id}", json=fields)

    def delete_recurrence(self, recurrence_id: int) -> dict:
        return self.request("DELETE", f"/api/recurrences/{recurrence_id}")

    def recurrence_details(self, recurrence_id: int) -> dict:
        return self.request("GET", f"/api/recurrences/{recurrence_id}/details")

    # -------------------------
    # Pending transactions
    # -------------------------
    def pending_transactions(self) -> List[dict]:
        return self.request("GET", "/api/transactions/pending")

    def confirm_transaction(self, transaction_id: int, account_id: int) -> dict:
        return self.request(
            "PUT", f"/api/transactions/{transaction_id}/confirm", json={"accountId": account_id}
        )

    def edit_transaction(self, transaction_id: int, fields: dict) -> dict:
        return self.request("PUT", f"/api/transactions/{transaction_id}", json=fields)

    def delete_transaction(self, transaction_id: int) -> dict:
        return self.request("DELETE", f"/api/transactions/{transaction_id}")

    # -------------------------
    # Goals / budget
    # -------------------------
    def goals(self) -> List[dict]:
        return self.request("GET", "/api/goals")

    def create_goal(self, payload: dict) -> dict:
        return self.request("POST", "/api/goals", json=payload)

    def update_goal_progress(self, goal_id: int, current_amount: str) -> dict:
        return self.request("PUT", f"/api/goals/{goal_id}/progress", json={"currentAmount": current_amount})

    def budget(self, month: int, year: int) -> dict:
        return self.request("GET", f"/api/budget/{month}/{year}")

    def save_budget(self, payload: dict) -> dict:
        return self.request("POST", "/api/budget", json=payload)

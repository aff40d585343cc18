#!/usr/bin/env python3
"""
Warehouse Service - E2E smoke tests against a running deployment

Run:
  python warehouse_e2e.py

The target database must already hold the product, the warehouse and an open
order for PRODUCT_ID / ORDER_AMOUNT created before "now".

Optional env:
  WAREHOUSE_BASE=http://localhost:8000
  API_PREFIX=/api
  PRODUCT_ID=1
  WAREHOUSE_ID=1
  ORDER_AMOUNT=3
  SKIP_PROCEDURE=1     skip the stored-procedure scenarios
  DEBUG=1
"""

from __future__ import annotations

import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def section_title(text: str):
    line = "─" * (len(text) + 2)
    print(f"\n{Style.BLUE}┌{line}┐{Style.RESET}")
    print(f"{Style.BLUE}│ {Style.BOLD}{text}{Style.RESET}{Style.BLUE} │{Style.RESET}")
    print(f"{Style.BLUE}└{line}┘{Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

WAREHOUSE_BASE = os.getenv("WAREHOUSE_BASE", "http://localhost:8000")
API_PREFIX = os.getenv("API_PREFIX", "/api")

PRODUCT_ID = int(os.getenv("PRODUCT_ID", "1"))
WAREHOUSE_ID = int(os.getenv("WAREHOUSE_ID", "1"))
ORDER_AMOUNT = int(os.getenv("ORDER_AMOUNT", "3"))

SKIP_PROCEDURE = os.getenv("SKIP_PROCEDURE", "0").strip() in {"1", "true", "True", "YES", "yes"}
DEBUG = os.getenv("DEBUG", "0").strip() in {"1", "true", "True", "YES", "yes"}

WAREHOUSE_PATH = API_PREFIX + "/warehouse"
PROCEDURE_PATH = API_PREFIX + "/warehouse/procedure"

# An id no seeded table should contain.
MISSING_ID = 999_999


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


# =========================
# Models
# =========================

@dataclass
class TestResult:
    name: str
    success: bool
    details: str = ""
    scenario: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, url: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    debug(f"{method} {url} json={kwargs.get('json')}")
    return requests.request(method, url, **kwargs)


def wait_for_health(base_url: str, timeout: int = 30) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", base_url + "/").status_code == 200:
                ok("warehouse_service is healthy.")
                return True
        except requests.exceptions.RequestException as e:
            debug(f"warehouse_service not ready: {e}")
        time.sleep(1)
    fail(f"warehouse_service did not become healthy in {timeout} seconds.")
    return False


def request_body(**overrides) -> Dict[str, Any]:
    body = {
        "idProduct": PRODUCT_ID,
        "idWarehouse": WAREHOUSE_ID,
        "amount": ORDER_AMOUNT,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    body.update(overrides)
    return body


def expect(name: str, path: str, body: Dict[str, Any], expected: int, scenario: str) -> Tuple[TestResult, Optional[requests.Response]]:
    """POST `body` and check the status code."""
    url = WAREHOUSE_BASE + path
    info(f"POST {url} → expecting HTTP {expected}")
    try:
        resp = http("POST", url, json=body)
    except requests.exceptions.RequestException as e:
        fail(f"{name}: {e}")
        return TestResult(name, False, str(e), scenario), None

    success = resp.status_code == expected
    msg = f"HTTP {resp.status_code}, body={resp.text}"
    (ok if success else fail)(f"{name}: {msg}")
    return TestResult(name, success, msg, scenario), resp


# =========================
# Scenarios
# =========================

def scenario_validation(path: str) -> List[TestResult]:
    scenario = f"Validation ({path})"
    section_title(scenario)
    results: List[TestResult] = []

    results.append(expect("Zero amount rejected", path, request_body(amount=0), 400, scenario)[0])
    results.append(expect("Negative amount rejected", path, request_body(amount=-5), 400, scenario)[0])
    return results


def scenario_missing_references() -> List[TestResult]:
    scenario = "Missing Product / Warehouse"
    section_title(scenario)
    return [
        expect("Unknown product", WAREHOUSE_PATH, request_body(idProduct=MISSING_ID), 404, scenario)[0],
        expect("Unknown warehouse", WAREHOUSE_PATH, request_body(idWarehouse=MISSING_ID), 404, scenario)[0],
    ]


def scenario_fulfillment() -> List[TestResult]:
    scenario = "Fulfillment"
    section_title(scenario)
    results: List[TestResult] = []

    body = request_body()
    result, resp = expect("Order fulfilled", WAREHOUSE_PATH, body, 201, scenario)
    results.append(result)
    if not result.success or resp is None:
        return results

    location = resp.headers.get("Location")
    movement_id = resp.json().get("id")
    section_title("Verify Recorded Movement")
    try:
        movement = http("GET", WAREHOUSE_BASE + location).json()
        success = movement.get("id") == movement_id and movement.get("amount") == ORDER_AMOUNT
        msg = f"GET {location} → {movement}"
        (ok if success else fail)(msg)
        results.append(TestResult("Movement readable at Location", success, msg, scenario))
    except (requests.exceptions.RequestException, TypeError, ValueError) as e:
        results.append(TestResult("Movement readable at Location", False, str(e), scenario))

    # The same order cannot be fulfilled twice.
    results.append(expect("Repeat rejected", WAREHOUSE_PATH, body, 400, scenario)[0])
    return results


def scenario_procedure_repeat() -> List[TestResult]:
    """The order fulfilled above must also be refused by the procedure."""
    scenario = "Stored Procedure"
    section_title(scenario)
    return [expect("Procedure refuses fulfilled order", PROCEDURE_PATH, request_body(), 400, scenario)[0]]


# =========================
# Summary
# =========================

def print_results(results: List[TestResult]) -> int:
    print(f"\n{Style.BOLD}================ TEST RESULTS ================ {Style.RESET}")
    passed = 0
    for r in results:
        icon = "✅" if r.success else "❌"
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{icon} [{r.scenario}] {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
        if r.success:
            passed += 1

    failed = len(results) - passed
    print(f"{Style.BOLD}==============================================={Style.RESET}")
    print(f"Total tests: {len(results)}  |  Passed: {Style.GREEN}{passed}{Style.RESET}  |  Failed: {Style.RED}{failed}{Style.RESET}")

    if failed > 0:
        print(f"\n{Style.YELLOW}{Style.BOLD}Troubleshooting hints:{Style.RESET}")
        print(f"{Style.YELLOW}- 'No valid order' means no open order for product {PRODUCT_ID} with amount {ORDER_AMOUNT} predates now.{Style.RESET}")
        print(f"{Style.YELLOW}- 500 responses carry the database message in 'detail'; check DATABASE_URL.{Style.RESET}")
        print()
    return failed


def main():
    info(f"Target: {WAREHOUSE_BASE}{API_PREFIX}")
    if not wait_for_health(WAREHOUSE_BASE):
        sys.exit(1)

    all_results: List[TestResult] = []
    all_results.extend(scenario_validation(WAREHOUSE_PATH))
    all_results.extend(scenario_missing_references())
    all_results.extend(scenario_fulfillment())
    if not SKIP_PROCEDURE:
        all_results.extend(scenario_validation(PROCEDURE_PATH))
        all_results.extend(scenario_procedure_repeat())

    sys.exit(1 if print_results(all_results) else 0)


if __name__ == "__main__":
    main()

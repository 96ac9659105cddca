# -*- coding: utf-8 -*-

"""Resolves and validates SPF records within DNS lookup limits"""

from __future__ import annotations

import json
import logging
from csv import DictWriter
from io import StringIO
from time import sleep
from typing import Optional, Union

import spfguard._constants
from spfguard._constants import (
    DEFAULT_DNS_RESOLVER,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_DNS_LOOKUPS,
    DEFAULT_MAX_VOID_DNS_LOOKUPS,
)
from spfguard.errors import SPFError
from spfguard.guard import DNSLookup, DNSLookupGuard
from spfguard.records import (
    SPFRecord,
    is_valid_spf_term,
    parse_spf_terms,
    spf_term_to_string,
)
from spfguard.spf import (
    SPFCheckResults,
    SPFMechanismMatcher,
    check_spf,
    check_spf_policy,
    evaluate_policy,
    evaluate_spf_record,
)
from spfguard.utils import normalize_domain

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""


__version__ = spfguard._constants.__version__

__all__ = [
    "__version__",
    "DNSLookupGuard",
    "SPFError",
    "SPFMechanismMatcher",
    "SPFRecord",
    "check_domains",
    "check_spf",
    "check_spf_policy",
    "evaluate_policy",
    "evaluate_spf_record",
    "is_valid_spf_term",
    "output_to_file",
    "parse_spf_terms",
    "results_to_csv",
    "results_to_json",
    "spf_term_to_string",
]


def check_domains(
    domains: list[str],
    ip: str,
    *,
    resolver_target: str = DEFAULT_DNS_RESOLVER,
    max_dns_lookups: int = DEFAULT_MAX_DNS_LOOKUPS,
    max_void_dns_lookups: int = DEFAULT_MAX_VOID_DNS_LOOKUPS,
    lookup: Optional[DNSLookup] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    wait: float = 0.0,
) -> Union[SPFCheckResults, list[SPFCheckResults]]:
    """
    Resolves the SPF records of the given domains

    Every domain is evaluated with its own lookup limits.

    Args:
        domains (list): A list of domains to check
        ip (str): The client IP address
        resolver_target (str): A DNS-over-HTTPS URL (or URL template), or the
                               address of a nameserver
        max_dns_lookups (int): The maximum number of DNS lookups per domain
        max_void_dns_lookups (int): The maximum number of void DNS lookups
                                    per domain
        lookup: A DNS lookup function to use instead of ``resolver_target``
        timeout (float): number of seconds to wait for an answer from DNS
        wait (float): number of seconds to wait between processing domains

    Returns:
       A ``dict`` or ``list`` of ``dict``; see :func:`spfguard.spf.check_spf`
    """
    domains = sorted(
        set(
            map(
                lambda d: normalize_domain(d.rstrip(".\r\n").strip().split(",")[0]),
                domains,
            )
        )
    )
    domains = [domain for domain in domains if "." in domain]
    results = []
    for domain in domains:
        logging.debug(f"Checking: {domain}")
        results.append(
            check_spf(
                domain,
                ip,
                resolver_target=resolver_target,
                max_dns_lookups=max_dns_lookups,
                max_void_dns_lookups=max_void_dns_lookups,
                lookup=lookup,
                timeout=timeout,
            )
        )
        sleep(wait)
    if len(results) == 1:
        results = results[0]

    return results


def results_to_json(results: Union[dict, list[dict]]) -> str:
    """
    Converts a dictionary of results or list of results to a JSON string

    Args:
        results (dict): A dictionary or list of dictionaries of results

    Returns:
        str: Results in JSON format
    """
    return json.dumps(results, ensure_ascii=False, indent=2)


def results_to_csv_rows(results: Union[dict, list[dict]]) -> list[dict]:
    """
    Converts a results dictionary or list of dictionaries and returns a
    list of CSV row dictionaries

    Args:
        results (dict): A dictionary or list of dictionaries of results

    Returns:
        list: A list of CSV row dictionaries
    """
    rows = []
    if isinstance(results, dict):
        results = [results]
    for result in results:
        row = {
            "domain": result["domain"],
            "valid": result["valid"],
            "dns_lookups": result["dns_lookups"],
            "void_dns_lookups": result["void_dns_lookups"],
            "records": " ".join(map(spf_term_to_string, result["records"])),
            "error": result.get("error"),
            "error_type": result.get("error_type"),
        }
        rows.append(row)
    return rows


def results_to_csv(results: Union[dict, list[dict]]) -> str:
    """
    Converts a dictionary of results or list of results to CSV text

    Args:
        results (dict): A dictionary or list of dictionaries of results

    Returns:
        str: Results in CSV format
    """
    fields = [
        "domain",
        "valid",
        "dns_lookups",
        "void_dns_lookups",
        "records",
        "error",
        "error_type",
    ]
    output = StringIO(newline="\n")
    writer = DictWriter(output, fieldnames=fields)
    writer.writeheader()
    writer.writerows(results_to_csv_rows(results))
    output.flush()

    return output.getvalue()


def output_to_file(path: str, content: str):
    """Write given content to the given path"""
    with open(
        path, "w", newline="\n", encoding="utf-8", errors="ignore"
    ) as output_file:
        output_file.write(content)

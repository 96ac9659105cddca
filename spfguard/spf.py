# -*- coding: utf-8 -*-
"""Sender Policy framework (SPF) record resolution and validation"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol, TypedDict, Union

from spfguard._constants import (
    DEFAULT_DNS_RESOLVER,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_DNS_LOOKUPS,
    DEFAULT_MAX_VOID_DNS_LOOKUPS,
    SPF_VERSION_TAG,
)
from spfguard.errors import (
    InvalidIPAddress,
    MultipleSPFRTXTRecords,
    SPFError,
    SPFRecordNotFound,
    SPFSyntaxError,
)
from spfguard.guard import DNSLookup, DNSLookupGuard
from spfguard.records import (
    SPFRecord,
    is_valid_spf_term,
    parse_spf_terms,
)
from spfguard.utils import (
    get_spf_options,
    is_valid_ip,
    normalize_domain,
    to_ascii_domain,
)

"""Copyright 2019-2025 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""

NON_PRINTABLE_REGEX = re.compile(r"[^\x20-\x7E]")
MATCHABLE_MECHANISMS = ("include", "ip4", "ip6")


class SPFMechanismMatcher(Protocol):
    """Checks a client IP address against a single mechanism"""

    def match(self, record: SPFRecord, ip: str, domain: str) -> bool: ...


class SPFEvaluationResults(TypedDict):
    dns_lookups: int
    void_dns_lookups: int
    records: list[SPFRecord]


class SPFCheckResultsSuccess(TypedDict):
    domain: str
    valid: bool
    dns_lookups: int
    void_dns_lookups: int
    records: list[SPFRecord]


class SPFCheckResultsError(SPFCheckResultsSuccess):
    error: str
    error_type: str


SPFCheckResults = Union[SPFCheckResultsSuccess, SPFCheckResultsError]


def find_spf_record(domain: str, answers: list) -> Optional[list[str]]:
    """
    Finds the single SPF record among the TXT answers for a domain

    Args:
        domain (str): The domain the answers belong to
        answers (list): DNS answers

    Returns:
        list: The terms of the SPF record, without the version tag, or
        ``None`` if no answer is an SPF record

    Raises:
        :exc:`spfguard.errors.MultipleSPFRTXTRecords`
        :exc:`spfguard.errors.SPFSyntaxError`
    """
    terms = None
    for answer in answers:
        data = answer.get("data") or ""
        words = data.strip().split()
        if not words or words[0] != SPF_VERSION_TAG:
            continue
        if terms is not None:
            raise MultipleSPFRTXTRecords(f"Multiple SPF records found for {domain}")
        if NON_PRINTABLE_REGEX.search(data):
            raise SPFSyntaxError(
                f"The SPF record for {domain} includes invalid characters"
            )
        terms = words[1:]
    return terms


def evaluate_spf_record(
    domain: str,
    guard: DNSLookupGuard,
    ip: str,
    *,
    matcher: Optional[SPFMechanismMatcher] = None,
) -> list[SPFRecord]:
    """
    Fetches, parses and validates the SPF record of a domain, following a
    ``redirect`` modifier when the record has no ``all`` term

    Args:
        domain (str): A domain name
        guard (DNSLookupGuard): The lookup guard shared by the whole evaluation
        ip (str): The client IP address
        matcher (SPFMechanismMatcher): Consulted for ``include``, ``ip4`` and
                                       ``ip6`` terms; its answers are only
                                       logged

    Returns:
        list: The parsed records of the domain, or of the redirect target

    Raises:
        :exc:`spfguard.errors.SPFError`
    """
    if not is_valid_ip(ip):
        raise InvalidIPAddress(f"Invalid IP {ip}")

    domain = to_ascii_domain(domain)
    logging.debug(f"Checking for a SPF record on {domain}")
    answers = guard.resolve(domain, "TXT")

    terms = find_spf_record(domain, answers)
    if not terms:
        raise SPFRecordNotFound(f"No SPF records for {domain}")

    records = parse_spf_terms(terms)

    redirects = [record for record in records if record["token"] == "redirect"]
    if len(redirects) > 1:
        raise SPFSyntaxError("more than 1 redirect found")

    has_all = any(record["token"] == "all" for record in records)
    if redirects and not has_all:
        redirect = redirects[0]
        if not is_valid_spf_term(redirect):
            raise SPFSyntaxError("unexpected empty value")
        logging.debug(f"Following the redirect from {domain} to {redirect['host']}")
        return evaluate_spf_record(redirect["host"], guard, ip, matcher=matcher)

    for record in records:
        if not is_valid_spf_term(record):
            raise SPFSyntaxError("unexpected empty value")
        token = record["token"]
        if token == "redirect":
            # only reachable when an all term is present, which overrides it
            logging.debug(f"Ignoring the redirect on {domain} because of all")
        elif token == "all":
            if record["host"]:
                raise SPFSyntaxError("unexpected extension for all modifier")
        elif token in MATCHABLE_MECHANISMS and matcher is not None:
            matched = matcher.match(record, ip, domain)
            logging.debug(f"{token}:{record['host']} matched {ip}: {matched}")

    return records


def evaluate_policy(
    domain: str,
    ip: str,
    resolver_target: str = DEFAULT_DNS_RESOLVER,
    max_dns_lookups: int = DEFAULT_MAX_DNS_LOOKUPS,
    max_void_dns_lookups: int = DEFAULT_MAX_VOID_DNS_LOOKUPS,
    *,
    lookup: Optional[DNSLookup] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    matcher: Optional[SPFMechanismMatcher] = None,
) -> SPFEvaluationResults:
    """
    Resolves and validates the SPF record of a domain

    Args:
        domain (str): A domain name
        ip (str): The client IP address
        resolver_target (str): A DNS-over-HTTPS URL (or URL template), or the
                               address of a nameserver
        max_dns_lookups (int): The maximum number of DNS lookups
        max_void_dns_lookups (int): The maximum number of void DNS lookups
        lookup: A DNS lookup function to use instead of ``resolver_target``
        timeout (float): number of seconds to wait for an answer from DNS
        matcher (SPFMechanismMatcher): An optional mechanism matcher

    Returns:
        dict: A ``dict`` with the following keys:
            - ``dns_lookups`` - The number of DNS lookups
            - ``void_dns_lookups`` - The number of void DNS lookups
            - ``records`` - A ``list`` of parsed SPF records

    Raises:
        :exc:`spfguard.errors.SPFError`
    """
    guard = DNSLookupGuard(
        resolver_target,
        max_dns_lookups,
        max_void_dns_lookups,
        lookup=lookup,
        timeout=timeout,
    )
    records = evaluate_spf_record(domain, guard, ip, matcher=matcher)
    results: SPFEvaluationResults = {
        "dns_lookups": guard.dns_lookups,
        "void_dns_lookups": guard.void_dns_lookups,
        "records": records,
    }
    return results


def check_spf(
    domain: str,
    ip: str,
    *,
    resolver_target: str = DEFAULT_DNS_RESOLVER,
    max_dns_lookups: int = DEFAULT_MAX_DNS_LOOKUPS,
    max_void_dns_lookups: int = DEFAULT_MAX_VOID_DNS_LOOKUPS,
    lookup: Optional[DNSLookup] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
) -> SPFCheckResults:
    """
    Returns a dictionary with the resolved SPF records or an error.

    Args:
        domain (str): A domain name
        ip (str): The client IP address
        resolver_target (str): A DNS-over-HTTPS URL (or URL template), or the
                               address of a nameserver
        max_dns_lookups (int): The maximum number of DNS lookups
        max_void_dns_lookups (int): The maximum number of void DNS lookups
        lookup: A DNS lookup function to use instead of ``resolver_target``
        timeout (float): number of seconds to wait for an answer from DNS

    Returns:
        dict: A ``dict`` with the following keys:
            - ``domain`` - The checked domain
            - ``valid`` - ``True`` if the records were resolved
            - ``dns_lookups`` - The number of DNS lookups
            - ``void_dns_lookups`` - The number of void DNS lookups
            - ``records`` - A ``list`` of parsed SPF records

        If an error occurs, ``records`` is empty, ``valid`` is ``False``,
        and the dictionary also has the following keys:
            - ``error`` - The error message
            - ``error_type`` - ``permerror`` or ``unknown``
    """
    domain = normalize_domain(domain)
    guard = DNSLookupGuard(
        resolver_target,
        max_dns_lookups,
        max_void_dns_lookups,
        lookup=lookup,
        timeout=timeout,
    )
    spf_results = {
        "domain": domain,
        "valid": True,
        "dns_lookups": 0,
        "void_dns_lookups": 0,
        "records": [],
    }
    try:
        spf_results["records"] = evaluate_spf_record(domain, guard, ip)
    except SPFError as error:
        logging.debug(f"SPF evaluation of {domain} failed: {error}")
        spf_results["valid"] = False
        spf_results["error"] = error.message
        spf_results["error_type"] = error.kind
    spf_results["dns_lookups"] = guard.dns_lookups
    spf_results["void_dns_lookups"] = guard.void_dns_lookups

    return spf_results


def check_spf_policy(
    options: dict, *, lookup: Optional[DNSLookup] = None
) -> SPFCheckResults:
    """
    Checks the SPF record of the sender domain described by partial options

    Args:
        options (dict): See :func:`spfguard.utils.get_spf_options`
        lookup: A DNS lookup function to use instead of the configured
                resolver

    Returns:
        dict: See :func:`check_spf`
    """
    parsed_options = get_spf_options(options)
    return check_spf(
        parsed_options["domain"],
        parsed_options["ip"],
        resolver_target=parsed_options["dns_resolver"],
        max_dns_lookups=parsed_options["max_dns_lookups"],
        max_void_dns_lookups=parsed_options["max_void_dns_lookups"],
        lookup=lookup,
    )

# -*- coding: utf-8 -*-
"""DNS utility functions"""

from __future__ import annotations

import ipaddress
import logging
import re
import unicodedata
from typing import Optional, TypedDict, Union
from collections.abc import Sequence

import dns.exception
import dns.name
import dns.resolver
from dns.nameserver import Nameserver
import requests
from expiringdict import ExpiringDict

from spfguard._constants import (
    DEFAULT_DNS_RESOLVER,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_DNS_LOOKUPS,
    DEFAULT_MAX_VOID_DNS_LOOKUPS,
    DNS_CACHE_MAX_AGE_SECONDS,
    DNS_CACHE_MAX_LEN,
    DNS_RECORD_TYPES,
    USER_AGENT,
)

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

DNS_CACHE = ExpiringDict(
    max_len=DNS_CACHE_MAX_LEN, max_age_seconds=DNS_CACHE_MAX_AGE_SECONDS
)

ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")  # includes ZWSP, ZWNJ, ZWJ, BOM
DOMAIN_REGEX = re.compile(r"^(?:[-A-Za-z0-9_]+\.)+[A-Za-z]{2,}$")
IPV4_MAPPED_REGEX = re.compile(r"^[:A-F]+:((\d+\.){3}\d+)$", re.IGNORECASE)
TXT_STRING_REGEX = re.compile(r'"((?:[^"\\]|\\.)*)"')


class DNSAnswer(TypedDict):
    name: str
    type: str
    TTL: Union[int, str]
    data: Optional[str]


class SPFOptions(TypedDict):
    ip: str
    sender: str
    helo: Optional[str]
    mta: Optional[str]
    domain: str
    max_dns_lookups: int
    max_void_dns_lookups: int
    dns_resolver: str


def normalize_domain(domain: str) -> str:
    """
    Normalize an input domain by removing zero-width characters and lowering it

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: A normalized domain
    """
    domain = unicodedata.normalize("NFC", domain)
    domain = ZERO_WIDTH_RE.sub("", domain)
    return domain.lower()


def to_ascii_domain(domain: str) -> str:
    """
    Converts an internationalized domain name to its ASCII (punycode) form

    Names that cannot be encoded are returned unchanged, so that domain
    validation can reject them later.

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: The ASCII form of the domain, without a trailing dot
    """
    try:
        return dns.name.from_text(domain).to_text(omit_final_dot=True)
    except dns.exception.DNSException as e:
        logging.debug(f"Unable to convert {domain!r} to ASCII: {e}")
        return domain


def is_valid_domain(domain: Optional[str]) -> bool:
    """
    Checks if a string has the shape of a domain name

    Args:
        domain (str): The domain name to check

    Returns:
        bool: ``True`` when the domain has at least 3 characters, one or
        more dotted labels and an alphabetic top-level domain
    """
    if not isinstance(domain, str) or len(domain) < 3:
        return False
    return DOMAIN_REGEX.match(domain) is not None


def is_valid_ip(ip: Optional[str]) -> bool:
    """
    Checks if a string is a valid IPv4 or IPv6 address

    Args:
        ip (str): The IP address to check

    Returns:
        bool: The result of the check
    """
    if not isinstance(ip, str):
        return False
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return True


def parse_dns_type(record_type: Union[int, str]) -> str:
    """
    Returns the textual name of a DNS record type given in numeric form

    Unknown codes are returned as strings unchanged.
    """
    if isinstance(record_type, str):
        return record_type
    for name, code in DNS_RECORD_TYPES.items():
        if code == record_type:
            return name
    return str(record_type)


def join_txt_strings(data: Optional[str]) -> Optional[str]:
    """
    Joins the quoted character-strings of TXT record data into one string

    Per RFC 7208 § 3.3, multiple strings are concatenated without adding
    spaces. Data that is not quoted is returned as-is.
    """
    if not data or not data.startswith('"'):
        return data
    strings = TXT_STRING_REGEX.findall(data)
    if not strings:
        return data
    return "".join(strings).replace('\\"', '"')


def build_doh_request(
    domain: str, record_type: str, resolver_url: str
) -> tuple[str, Optional[dict]]:
    """
    Builds the URL and query parameters for a DNS-over-HTTPS request

    Args:
        domain (str): The domain to query
        record_type (str): The record type to query for
        resolver_url (str): Either a template containing ``{domain}`` and
                            ``{type}`` placeholders, or a base URL that
                            takes ``name`` and ``type`` query parameters

    Returns:
        tuple: The URL and the query parameters (``None`` for templates)
    """
    if "{domain}" in resolver_url:
        url = resolver_url.replace("{domain}", domain).replace("{type}", record_type)
        return url, None
    return resolver_url, {"name": domain, "type": record_type}


def query_doh(
    domain: str,
    record_type: str,
    *,
    resolver_url: str = DEFAULT_DNS_RESOLVER,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    session: Optional[requests.Session] = None,
    cache: Optional[ExpiringDict] = None,
) -> Union[list[DNSAnswer], bool]:
    """
    Queries a DNS-over-HTTPS JSON resolver

    Args:
        domain (str): The domain or subdomain to query about
        record_type (str): The record type to query for
        resolver_url (str): The resolver URL or URL template
        timeout (float): HTTP timeout in seconds
        session (requests.Session): A session to reuse
        cache (ExpiringDict): Cache storage

    Returns:
        list: A list of answers, or ``False`` if the resolver did not
        return a successful response with answers

    Raises:
        :exc:`requests.exceptions.RequestException`
    """
    record_type = record_type.upper()
    cache_key = f"{resolver_url}_{domain.lower()}_{record_type}"
    if cache is None:
        cache = DNS_CACHE
    if isinstance(cache, ExpiringDict):
        answers = cache.get(cache_key)
        if isinstance(answers, list):
            return answers
    if session is None:
        session = requests.Session()
        session.headers = {  # pyright: ignore[reportAttributeAccessIssue]
            "User-Agent": USER_AGENT,
            "Accept": "application/dns-json",
        }
    url, params = build_doh_request(domain, record_type, resolver_url)
    logging.debug(f"Querying {url} for {record_type} records on {domain}")
    response = session.get(url, params=params, timeout=timeout)
    if not response.ok:
        logging.debug(f"DNS resolver returned HTTP {response.status_code}")
        return False
    results = response.json().get("Answer")
    if not results:
        return False
    answers: list[DNSAnswer] = []
    for result in results:
        answer_type = parse_dns_type(result.get("type"))
        data = result.get("data")
        if answer_type == "TXT":
            data = join_txt_strings(data)
        answers.append(
            {
                "name": result.get("name", domain),
                "type": answer_type,
                "TTL": result.get("TTL", "auto"),
                "data": data,
            }
        )
    if isinstance(cache, ExpiringDict):
        cache[cache_key] = answers

    return answers


def query_dns(
    domain: str,
    record_type: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    cache: Optional[ExpiringDict] = None,
) -> list[DNSAnswer]:
    """
    Queries DNS

    Args:
        domain (str): The domain or subdomain to query about
        record_type (str): The record type to query for
        nameservers (list): A list of one or more nameservers to use
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): Sets the DNS timeout in seconds
        cache (ExpiringDict): Cache storage

    Returns:
        list: A list of answers; empty when the name or the record type
        does not exist
    """
    record_type = record_type.upper()
    cache_key = f"{nameservers}_{domain.lower()}_{record_type}"
    if cache is None:
        cache = DNS_CACHE
    if isinstance(cache, ExpiringDict):
        answers = cache.get(cache_key)
        if isinstance(answers, list):
            return answers
    if not resolver:
        resolver = dns.resolver.Resolver(configure=nameservers is None)
        timeout = float(timeout)
        if nameservers is not None:
            resolver.nameservers = nameservers
        resolver.timeout = timeout
        resolver.lifetime = timeout
    try:
        results = resolver.resolve(domain, record_type, lifetime=timeout)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    name = results.rrset.name.to_text(omit_final_dot=True)
    ttl = results.rrset.ttl
    answers: list[DNSAnswer] = []
    for rdata in results:
        if record_type == "TXT":
            data = b"".join(rdata.strings).decode("utf-8", errors="replace")
        else:
            data = rdata.to_text().rstrip(".")
        answers.append({"name": name, "type": record_type, "TTL": ttl, "data": data})
    if isinstance(cache, ExpiringDict):
        cache[cache_key] = answers

    return answers


def get_spf_options(options: dict) -> SPFOptions:
    """
    Fills in defaults and derives the sender domain from partial options

    Args:
        options (dict): Any of ``ip``, ``sender``, ``helo``, ``mta``,
                        ``max_dns_lookups``, ``max_void_dns_lookups`` and
                        ``dns_resolver``

    Returns:
        dict: A complete set of options, including the ``domain`` to check
    """
    ip = options.get("ip")
    if ip is not None:
        ip = str(ip)
        ipv4 = IPV4_MAPPED_REGEX.match(ip)
        if ipv4:
            ip = ipv4.group(1)

    helo = options.get("helo")
    sender = options.get("sender")
    if not sender:
        sender = f"postmaster@{helo}"
    elif "@" not in sender:
        sender = f"postmaster@{sender}"
    elif sender.startswith("@"):
        sender = f"postmaster{sender}"

    domain = sender.split("@")[-1].lower().strip() or "-"

    max_dns_lookups = options.get("max_dns_lookups")
    if max_dns_lookups is None:
        max_dns_lookups = DEFAULT_MAX_DNS_LOOKUPS
    max_void_dns_lookups = options.get("max_void_dns_lookups")
    if max_void_dns_lookups is None:
        max_void_dns_lookups = DEFAULT_MAX_VOID_DNS_LOOKUPS

    parsed: SPFOptions = {
        "ip": ip,
        "sender": sender,
        "helo": helo,
        "mta": options.get("mta"),
        "domain": domain,
        "max_dns_lookups": int(max_dns_lookups),
        "max_void_dns_lookups": int(max_void_dns_lookups),
        "dns_resolver": options.get("dns_resolver") or DEFAULT_DNS_RESOLVER,
    }
    return parsed

# -*- coding: utf-8 -*-
"""DNS lookup limits for SPF evaluation"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from spfguard._constants import (
    DEFAULT_DNS_RESOLVER,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_DNS_LOOKUPS,
    DEFAULT_MAX_VOID_DNS_LOOKUPS,
)
from spfguard.errors import (
    InvalidDomain,
    SPFDNSLookupFailed,
    SPFTooManyDNSLookups,
    SPFTooManyVoidDNSLookups,
    SPFVoidDNSLookup,
)
from spfguard.utils import DNSAnswer, is_valid_domain, query_dns, query_doh

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

DNSLookup = Callable[[str, str], Union[list[DNSAnswer], bool, None]]


def get_dns_lookup(
    resolver_target: str, *, timeout: float = DEFAULT_HTTP_TIMEOUT
) -> DNSLookup:
    """
    Returns a DNS lookup function for a resolver target

    Args:
        resolver_target (str): A DNS-over-HTTPS URL (or URL template), or the
                               address of a nameserver
        timeout (float): number of seconds to wait for an answer

    Returns:
        A function taking a domain and a record type
    """
    if resolver_target.lower().startswith(("https://", "http://")):

        def lookup(domain: str, record_type: str):
            return query_doh(
                domain, record_type, resolver_url=resolver_target, timeout=timeout
            )

    else:

        def lookup(domain: str, record_type: str):
            return query_dns(
                domain, record_type, nameservers=[resolver_target], timeout=timeout
            )

    return lookup


class DNSLookupGuard(object):
    """
    Counts the DNS lookups of one SPF evaluation and enforces their limits

    A single guard must be shared by an evaluation and every redirect it
    follows, and must not be shared between evaluations.
    """

    def __init__(
        self,
        resolver_target: str = DEFAULT_DNS_RESOLVER,
        max_dns_lookups: int = DEFAULT_MAX_DNS_LOOKUPS,
        max_void_dns_lookups: int = DEFAULT_MAX_VOID_DNS_LOOKUPS,
        *,
        lookup: Optional[DNSLookup] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ):
        """
        Args:
            resolver_target (str): A DNS-over-HTTPS URL (or URL template), or
                                   the address of a nameserver
            max_dns_lookups (int): The maximum number of DNS lookups
            max_void_dns_lookups (int): The maximum number of lookups that
                                        may return no answers
            lookup: A function used for lookups instead of the one built
                    from ``resolver_target``
            timeout (float): number of seconds to wait for an answer
        """
        self.resolver_target = resolver_target
        self._max_dns_lookups = max_dns_lookups
        self._max_void_dns_lookups = max_void_dns_lookups
        if lookup is None:
            lookup = get_dns_lookup(resolver_target, timeout=timeout)
        self._lookup = lookup
        self._dns_lookups = 0
        self._void_dns_lookups = 0

    @property
    def dns_lookups(self) -> int:
        return self._dns_lookups

    @property
    def void_dns_lookups(self) -> int:
        return self._void_dns_lookups

    @property
    def max_dns_lookups(self) -> int:
        return self._max_dns_lookups

    @property
    def max_void_dns_lookups(self) -> int:
        return self._max_void_dns_lookups

    def resolve(
        self, domain: Optional[str], record_type: str = "TXT"
    ) -> list[DNSAnswer]:
        """
        Performs one counted DNS lookup

        Every call counts against the lookup limit, including calls that
        fail. Lookups without answers also count against the void limit.

        Args:
            domain (str): The domain to query
            record_type (str): The record type to query for

        Returns:
            list: A non-empty list of answers

        Raises:
            :exc:`spfguard.errors.SPFTooManyDNSLookups`
            :exc:`spfguard.errors.InvalidDomain`
            :exc:`spfguard.errors.SPFDNSLookupFailed`
        """
        self._dns_lookups += 1
        logging.debug(
            f"DNS lookup {self._dns_lookups}/{self._max_dns_lookups}: "
            f"{record_type} {domain}"
        )

        if self._dns_lookups > self._max_dns_lookups:
            raise SPFTooManyDNSLookups(
                "Too many DNS requests - "
                f"{self._dns_lookups}/{self._max_dns_lookups} "
                "(RFC 7208 § 4.6.4)",
                dns_lookups=self._dns_lookups,
            )

        if not domain or not is_valid_domain(domain):
            raise InvalidDomain(f"Invalid domain {domain}")

        try:
            answers = self._lookup(domain, record_type)
            if not answers:
                self._void_dns_lookups += 1
                if self._void_dns_lookups > self._max_void_dns_lookups:
                    raise SPFTooManyVoidDNSLookups(
                        "Too many void DNS results - "
                        f"{self._void_dns_lookups}/{self._max_void_dns_lookups} "
                        "(RFC 7208 § 4.6.4)",
                        void_dns_lookups=self._void_dns_lookups,
                    )
                raise SPFVoidDNSLookup(f"No {record_type} records found for {domain}")
            return answers
        except Exception as error:
            raise SPFDNSLookupFailed(
                f"Unable to resolve DNS for {domain}: {error}", cause=error
            ) from error

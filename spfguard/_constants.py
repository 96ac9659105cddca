# -*- coding: utf-8 -*-
"""Constant values"""

from __future__ import annotations
import platform
import os

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

__version__ = "1.0.0"

OS = platform.system()
OS_RELEASE = platform.release()
USER_AGENT = f"Mozilla/5.0 (({OS} {OS_RELEASE})) spfguard/{__version__}"

SPF_VERSION_TAG = "v=spf1"
SPF_QUALIFIERS = ("?", "-", "+", "~")
SPF_MODIFIERS = ("all", "exp")
SPF_MECHANISMS = (
    "a",
    "a:PTR",
    "a:SPF",
    "mx",
    "ip4",
    "ip6",
    "all",
    "ptr",
    "exists",
    "ext",
    "st",
    "redirect",
    "include",
)

DNS_RECORD_TYPES = {
    "A": 1,
    "NS": 2,
    "CNAME": 5,
    "SOA": 6,
    "PTR": 12,
    "MX": 15,
    "TXT": 16,
    "AAAA": 28,
    "SRV": 33,
    "NAPTR": 35,
    "CERT": 37,
    "DS": 43,
    "RRSIG": 46,
    "NSEC": 47,
    "DNSKEY": 48,
    "TLSA": 52,
    "CAA": 257,
}

DEFAULT_DNS_RESOLVER = "https://dns.google/resolve"
DEFAULT_MAX_DNS_LOOKUPS = 10
DEFAULT_MAX_VOID_DNS_LOOKUPS = 2
DEFAULT_HTTP_TIMEOUT = 2.0
CACHE_MAX_LEN = 200000
CACHE_MAX_AGE_SECONDS = 1800

env = os.environ

if "DNS_RESOLVER" in env:
    DEFAULT_DNS_RESOLVER = env["DNS_RESOLVER"]
if "MAX_DNS_LOOKUPS" in env:
    DEFAULT_MAX_DNS_LOOKUPS = int(env["MAX_DNS_LOOKUPS"])
if "MAX_VOID_DNS_LOOKUPS" in env:
    DEFAULT_MAX_VOID_DNS_LOOKUPS = int(env["MAX_VOID_DNS_LOOKUPS"])
if "HTTP_TIMEOUT" in env:
    DEFAULT_HTTP_TIMEOUT = float(env["HTTP_TIMEOUT"])
if "CACHE_MAX_LEN" in env:
    CACHE_MAX_LEN = int(env["CACHE_MAX_LEN"])
if "CACHE_MAX_AGE_SECONDS" in env:
    CACHE_MAX_AGE_SECONDS = int(env["CACHE_MAX_AGE_SECONDS"])

DNS_CACHE_MAX_LEN = CACHE_MAX_LEN
if "DNS_CACHE_MAX_LEN" in env:
    DNS_CACHE_MAX_LEN = int(env["DNS_CACHE_MAX_LEN"])
DNS_CACHE_MAX_AGE_SECONDS = CACHE_MAX_AGE_SECONDS
if "DNS_CACHE_MAX_AGE_SECONDS" in env:
    DNS_CACHE_MAX_AGE_SECONDS = int(env["DNS_CACHE_MAX_AGE_SECONDS"])

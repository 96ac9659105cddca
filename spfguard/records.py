# -*- coding: utf-8 -*-
"""Parsing and structural validation of SPF record terms"""

from __future__ import annotations

from typing import Literal, Optional, TypedDict, Union
from collections.abc import Iterable

from spfguard._constants import SPF_MODIFIERS, SPF_QUALIFIERS

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

TERM_DELIMITERS = (":", "=")
EQUALS_TOKENS = ("redirect", "exp")


class SPFMechanism(TypedDict):
    type: Literal["mechanism"]
    token: str
    host: Optional[str]
    qualifier: Optional[str]


class SPFModifier(TypedDict):
    type: Literal["modifier"]
    token: str
    host: Optional[str]
    qualifier: Optional[str]


SPFRecord = Union[SPFMechanism, SPFModifier]


def _split_term(term: str) -> tuple[str, Optional[str]]:
    positions = [term.find(d) for d in TERM_DELIMITERS if d in term]
    if not positions:
        return term, None
    pos = min(positions)
    return term[:pos], term[pos + 1 :]


def parse_spf_term(term: str) -> SPFRecord:
    """
    Converts a single raw SPF term into a record

    The term is split on its first ``:`` or ``=``. A leading qualifier is
    removed from the token and kept as ``qualifier``. This never fails;
    incomplete terms are left for :func:`is_valid_spf_term` to reject.

    Args:
        term (str): A term such as ``-ip4:192.0.2.0/24`` or ``~all``

    Returns:
        dict: A ``mechanism`` or ``modifier`` record
    """
    token, host = _split_term(term)
    qualifier = None
    if token[:1] in SPF_QUALIFIERS:
        qualifier = token[0]
        token = token[1:]
    token = token.lower()

    if token in SPF_MODIFIERS:
        modifier: SPFModifier = {
            "type": "modifier",
            "token": token,
            "host": host,
            "qualifier": qualifier,
        }
        return modifier
    mechanism: SPFMechanism = {
        "type": "mechanism",
        "token": token,
        "host": host,
        "qualifier": qualifier,
    }
    return mechanism


def parse_spf_terms(terms: Iterable[str]) -> list[SPFRecord]:
    """Converts raw SPF terms (without the version tag) into records"""
    return [parse_spf_term(term) for term in terms]


def is_valid_spf_term(record: SPFRecord) -> bool:
    """
    Checks the structure of a parsed record

    Mechanisms must have a non-empty host. Modifiers are always structurally
    valid; semantic checks belong to the evaluation.
    """
    return record["type"] != "mechanism" or bool(record["host"])


def spf_term_to_string(record: SPFRecord) -> str:
    """Converts a parsed record back into its raw term"""
    term = f"{record['qualifier'] or ''}{record['token']}"
    if record["host"] is not None:
        delimiter = "=" if record["token"] in EQUALS_TOKENS else ":"
        term = f"{term}{delimiter}{record['host']}"
    return term

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import unittest
from unittest import mock

import dns.resolver
from expiringdict import ExpiringDict

import spfguard
import spfguard.errors
import spfguard.guard
import spfguard.records
import spfguard.spf
import spfguard.utils
from spfguard._constants import DEFAULT_HTTP_TIMEOUT

test_ip = "192.0.2.10"


def fake_lookup(zone):
    """Returns a DNS lookup function that answers TXT queries from a dict"""
    calls = []

    def lookup(domain, record_type):
        calls.append((domain, record_type))
        return [
            {"name": domain, "type": record_type, "TTL": 300, "data": data}
            for data in zone.get(domain, [])
        ]

    lookup.calls = calls
    return lookup


class Test(unittest.TestCase):
    def testParseMechanismWithQualifier(self):
        """A qualifier, token and host are extracted from a mechanism"""
        record = spfguard.records.parse_spf_term("-ip4:192.0.2.0/24")
        self.assertEqual(record["type"], "mechanism")
        self.assertEqual(record["token"], "ip4")
        self.assertEqual(record["host"], "192.0.2.0/24")
        self.assertEqual(record["qualifier"], "-")

    def testSPFTermRoundTrip(self):
        """Parsed terms serialize back to the original text"""
        terms = [
            "-ip4:192.0.2.0/24",
            "~all",
            "include:_spf.example.com",
            "ip6:2001:db8::/32",
            "redirect=_spf.example.com",
            "exp=explain.example.com",
        ]
        for term in terms:
            record = spfguard.records.parse_spf_term(term)
            self.assertEqual(spfguard.records.spf_term_to_string(record), term)

    def testParseIPv6Mechanism(self):
        """Only the first colon separates the token from the host"""
        record = spfguard.records.parse_spf_term("+ip6:2001:db8::/32")
        self.assertEqual(record["token"], "ip6")
        self.assertEqual(record["host"], "2001:db8::/32")
        self.assertEqual(record["qualifier"], "+")

    def testParseModifiers(self):
        """all and exp are modifiers, even with a qualifier"""
        record = spfguard.records.parse_spf_term("~all")
        self.assertEqual(record["type"], "modifier")
        self.assertEqual(record["token"], "all")
        self.assertIsNone(record["host"])
        self.assertEqual(record["qualifier"], "~")

        record = spfguard.records.parse_spf_term("exp=explain.example.com")
        self.assertEqual(record["type"], "modifier")
        self.assertEqual(record["token"], "exp")
        self.assertEqual(record["host"], "explain.example.com")
        self.assertIsNone(record["qualifier"])

    def testParseRedirect(self):
        """A redirect is a mechanism whose host follows the equals sign"""
        record = spfguard.records.parse_spf_term("redirect=_spf.example.com")
        self.assertEqual(record["type"], "mechanism")
        self.assertEqual(record["token"], "redirect")
        self.assertEqual(record["host"], "_spf.example.com")

    def testUppercaseSPFMechanism(self):
        """Treat uppercase SPF mechanisms as valid"""
        records = spfguard.records.parse_spf_terms(["IP4:147.75.8.208", "-ALL"])
        self.assertEqual(records[0]["token"], "ip4")
        self.assertEqual(records[1]["token"], "all")
        self.assertEqual(records[1]["type"], "modifier")

    def testIncompleteTermsParse(self):
        """Terms without a host are parsed but are not valid mechanisms"""
        mx, a, ptr = spfguard.records.parse_spf_terms(["mx", "a:", "?ptr"])
        self.assertIsNone(mx["host"])
        self.assertEqual(a["host"], "")
        self.assertEqual(ptr["qualifier"], "?")
        for record in (mx, a, ptr):
            self.assertFalse(spfguard.records.is_valid_spf_term(record))

    def testModifiersAreStructurallyValid(self):
        for term in ["all", "-all", "all:extra", "exp="]:
            record = spfguard.records.parse_spf_term(term)
            self.assertTrue(spfguard.records.is_valid_spf_term(record))

    def testGuardTooManyDNSLookups(self):
        """The lookup limit is enforced before the lookup is sent"""
        lookup = fake_lookup({"example.com": ["v=spf1 -all"]})
        guard = spfguard.guard.DNSLookupGuard(
            max_dns_lookups=2, max_void_dns_lookups=2, lookup=lookup
        )
        guard.resolve("example.com")
        guard.resolve("example.com")
        with self.assertRaises(spfguard.errors.SPFTooManyDNSLookups) as context:
            guard.resolve("example.com")
        self.assertEqual(context.exception.kind, "permerror")
        self.assertEqual(context.exception.data, {"dns_lookups": 3})
        self.assertEqual(guard.dns_lookups, 3)
        self.assertEqual(len(lookup.calls), 2)

    def testGuardInvalidDomain(self):
        """Invalid domains count as lookups but are never queried"""
        lookup = fake_lookup({})
        guard = spfguard.guard.DNSLookupGuard(lookup=lookup)
        for domain in [None, "", "ab", "localhost", "example.123", "exa mple.com"]:
            with self.assertRaises(spfguard.errors.InvalidDomain) as context:
                guard.resolve(domain)
            self.assertEqual(context.exception.kind, "permerror")
        self.assertEqual(guard.dns_lookups, 6)
        self.assertEqual(lookup.calls, [])

    def testGuardVoidDNSLookups(self):
        """Lookups without answers fail, and count against the void limit"""
        guard = spfguard.guard.DNSLookupGuard(
            max_void_dns_lookups=2, lookup=fake_lookup({})
        )
        for i in range(2):
            with self.assertRaises(spfguard.errors.SPFDNSLookupFailed) as context:
                guard.resolve("void.example.com")
            self.assertEqual(context.exception.kind, "unknown")
            self.assertIsInstance(
                context.exception.cause, spfguard.errors.SPFVoidDNSLookup
            )
        self.assertEqual(guard.void_dns_lookups, 2)

        with self.assertRaises(spfguard.errors.SPFDNSLookupFailed) as context:
            guard.resolve("void.example.com")
        cause = context.exception.cause
        self.assertIsInstance(cause, spfguard.errors.SPFTooManyVoidDNSLookups)
        self.assertEqual(cause.kind, "permerror")
        self.assertEqual(context.exception.kind, "unknown")
        self.assertEqual(guard.void_dns_lookups, 3)

    def testGuardFailedLookupIsVoid(self):
        guard = spfguard.guard.DNSLookupGuard(lookup=lambda domain, record_type: False)
        with self.assertRaises(spfguard.errors.SPFDNSLookupFailed):
            guard.resolve("example.com")
        self.assertEqual(guard.void_dns_lookups, 1)

    def testGuardWrapsLookupErrors(self):
        """Transport errors are reported as unknown errors with a cause"""
        error = ConnectionError("connection refused")

        def lookup(domain, record_type):
            raise error

        guard = spfguard.guard.DNSLookupGuard(lookup=lookup)
        with self.assertRaises(spfguard.errors.SPFDNSLookupFailed) as context:
            guard.resolve("example.com", "A")
        self.assertEqual(context.exception.kind, "unknown")
        self.assertIs(context.exception.cause, error)
        self.assertIs(context.exception.__cause__, error)
        self.assertEqual(guard.void_dns_lookups, 0)

    def testGuardSelectsTransport(self):
        doh = spfguard.guard.get_dns_lookup("https://dns.example/resolve")
        with mock.patch("spfguard.guard.query_doh", return_value=[]) as query_doh:
            doh("example.com", "TXT")
        query_doh.assert_called_once_with(
            "example.com",
            "TXT",
            resolver_url="https://dns.example/resolve",
            timeout=DEFAULT_HTTP_TIMEOUT,
        )

        udp = spfguard.guard.get_dns_lookup("192.0.2.53", timeout=1.0)
        with mock.patch("spfguard.guard.query_dns", return_value=[]) as query_dns:
            udp("example.com", "MX")
        query_dns.assert_called_once_with(
            "example.com", "MX", nameservers=["192.0.2.53"], timeout=1.0
        )

    def testEvaluateSPFRecord(self):
        zone = {
            "example.com": [
                "google-site-verification=abc123",
                "v=spf1 ip4:192.0.2.0/24 include:_spf.example.net ~all",
            ]
        }
        results = spfguard.evaluate_policy(
            "example.com", test_ip, lookup=fake_lookup(zone)
        )
        self.assertEqual(results["dns_lookups"], 1)
        self.assertEqual(results["void_dns_lookups"], 0)
        self.assertEqual(
            list(map(spfguard.spf_term_to_string, results["records"])),
            ["ip4:192.0.2.0/24", "include:_spf.example.net", "~all"],
        )

    def testMultipleSPFRecords(self):
        """Two SPF records are a permanent error, whatever they contain"""
        zone = {"example.com": ["v=spf1 -all", "v=spf1 -all"]}
        with self.assertRaises(spfguard.errors.MultipleSPFRTXTRecords) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(context.exception.kind, "permerror")

    def testSPFRecordNotFound(self):
        zone = {
            "example.com": ["v=spf10 -all", "spf1 -all"],
            "empty.example.com": ["v=spf1"],
        }
        for domain in zone:
            with self.assertRaises(spfguard.errors.SPFRecordNotFound) as context:
                spfguard.evaluate_policy(domain, test_ip, lookup=fake_lookup(zone))
            self.assertEqual(context.exception.kind, "permerror")

    def testInvalidCharactersInSPFRecord(self):
        zone = {"example.com": ["v=spf1 include:exämple.com -all"]}
        with self.assertRaises(spfguard.errors.SPFSyntaxError) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(context.exception.kind, "permerror")

    def testRedirect(self):
        """A redirect is followed with cumulative lookup counts"""
        zone = {
            "example.com": ["v=spf1 redirect=_spf.example.com"],
            "_spf.example.com": ["v=spf1 ip4:192.0.2.0/24 -all"],
        }
        lookup = fake_lookup(zone)
        results = spfguard.evaluate_policy("example.com", test_ip, lookup=lookup)
        self.assertEqual(results["dns_lookups"], 2)
        self.assertEqual(
            lookup.calls, [("example.com", "TXT"), ("_spf.example.com", "TXT")]
        )
        self.assertEqual(
            list(map(spfguard.spf_term_to_string, results["records"])),
            ["ip4:192.0.2.0/24", "-all"],
        )

    def testAllOverridesRedirect(self):
        """A redirect is ignored when the record has an all term"""
        zone = {
            "example.com": ["v=spf1 all redirect=_spf.example.com"],
            "_spf.example.com": ["v=spf1 ip4:192.0.2.0/24 -all"],
        }
        lookup = fake_lookup(zone)
        results = spfguard.evaluate_policy("example.com", test_ip, lookup=lookup)
        self.assertEqual(results["dns_lookups"], 1)
        self.assertEqual(lookup.calls, [("example.com", "TXT")])
        self.assertEqual(
            [record["token"] for record in results["records"]], ["all", "redirect"]
        )

    def testMultipleRedirects(self):
        zone = {"example.com": ["v=spf1 redirect=a.example.com redirect=b.example.com"]}
        with self.assertRaises(spfguard.errors.SPFSyntaxError) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(str(context.exception), "more than 1 redirect found")

    def testEmptyRedirect(self):
        zone = {"example.com": ["v=spf1 redirect="]}
        with self.assertRaises(spfguard.errors.SPFSyntaxError) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(str(context.exception), "unexpected empty value")

    def testRedirectLoop(self):
        """A redirect loop stops at the DNS lookup limit"""
        zone = {"example.com": ["v=spf1 redirect=example.com"]}
        lookup = fake_lookup(zone)
        with self.assertRaises(spfguard.errors.SPFTooManyDNSLookups) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=lookup)
        self.assertEqual(context.exception.kind, "permerror")
        self.assertEqual(len(lookup.calls), 10)

    def testRedirectToVoidDomain(self):
        zone = {"example.com": ["v=spf1 redirect=missing.example.com"]}
        results = spfguard.check_spf("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertFalse(results["valid"])
        self.assertEqual(results["error_type"], "unknown")
        self.assertEqual(results["dns_lookups"], 2)
        self.assertEqual(results["void_dns_lookups"], 1)
        self.assertEqual(results["records"], [])

    def testAllWithExtension(self):
        zone = {"example.com": ["v=spf1 ip4:192.0.2.1 all:extra"]}
        with self.assertRaises(spfguard.errors.SPFSyntaxError) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(context.exception.kind, "permerror")
        self.assertEqual(
            context.exception.message, "unexpected extension for all modifier"
        )

    def testMechanismWithoutValue(self):
        zone = {"example.com": ["v=spf1 mx -all"]}
        with self.assertRaises(spfguard.errors.SPFSyntaxError) as context:
            spfguard.evaluate_policy("example.com", test_ip, lookup=fake_lookup(zone))
        self.assertEqual(str(context.exception), "unexpected empty value")

    def testInvalidIP(self):
        """An invalid client IP fails before any DNS lookup"""
        lookup = fake_lookup({"example.com": ["v=spf1 -all"]})
        guard = spfguard.DNSLookupGuard(lookup=lookup)
        with self.assertRaises(spfguard.errors.InvalidIPAddress) as context:
            spfguard.evaluate_spf_record("example.com", guard, "999.999.999.999")
        self.assertEqual(context.exception.kind, "permerror")
        self.assertEqual(guard.dns_lookups, 0)
        self.assertEqual(lookup.calls, [])

        results = spfguard.check_spf("example.com", "999.999.999.999", lookup=lookup)
        self.assertFalse(results["valid"])
        self.assertEqual(results["error_type"], "permerror")
        self.assertEqual(results["dns_lookups"], 0)

    def testInternationalizedDomain(self):
        zone = {"xn--bcher-kva.example": ["v=spf1 -all"]}
        lookup = fake_lookup(zone)
        results = spfguard.evaluate_policy("bücher.example", test_ip, lookup=lookup)
        self.assertEqual(lookup.calls, [("xn--bcher-kva.example", "TXT")])
        self.assertEqual(len(results["records"]), 1)

    def testMechanismMatcher(self):
        """A matcher is consulted but does not change the result"""
        zone = {
            "example.com": [
                "v=spf1 ip4:192.0.2.0/24 ip6:2001:db8::/32 "
                "include:_spf.example.net mx:mail.example.com -all"
            ]
        }
        matcher = mock.Mock()
        matcher.match.return_value = True
        results = spfguard.evaluate_policy(
            "example.com", test_ip, lookup=fake_lookup(zone), matcher=matcher
        )
        self.assertEqual(len(results["records"]), 5)
        self.assertEqual(matcher.match.call_count, 3)
        matched = [call.args[0]["token"] for call in matcher.match.call_args_list]
        self.assertEqual(matched, ["ip4", "ip6", "include"])

    def testCheckSPF(self):
        zone = {"example.com": ["v=spf1 ip4:192.0.2.0/24 -all"]}
        results = spfguard.check_spf("Example.COM", test_ip, lookup=fake_lookup(zone))
        self.assertTrue(results["valid"])
        self.assertEqual(results["domain"], "example.com")
        self.assertEqual(results["dns_lookups"], 1)
        self.assertNotIn("error", results)

    def testCheckSPFPolicy(self):
        """The domain and IP address are derived from partial options"""
        zone = {"example.com": ["v=spf1 -all"]}
        lookup = fake_lookup(zone)
        results = spfguard.check_spf_policy(
            {"ip": "::ffff:192.0.2.1", "sender": "user@Example.com"}, lookup=lookup
        )
        self.assertTrue(results["valid"])
        self.assertEqual(lookup.calls, [("example.com", "TXT")])

    def testGetSPFOptions(self):
        options = spfguard.utils.get_spf_options({"helo": "mail.example.com"})
        self.assertEqual(options["sender"], "postmaster@mail.example.com")
        self.assertEqual(options["domain"], "mail.example.com")
        self.assertEqual(options["max_dns_lookups"], 10)
        self.assertEqual(options["max_void_dns_lookups"], 2)
        self.assertEqual(options["dns_resolver"], "https://dns.google/resolve")

        options = spfguard.utils.get_spf_options({"sender": "example.com"})
        self.assertEqual(options["sender"], "postmaster@example.com")

        options = spfguard.utils.get_spf_options(
            {"sender": "@example.org", "max_void_dns_lookups": 0}
        )
        self.assertEqual(options["sender"], "postmaster@example.org")
        self.assertEqual(options["domain"], "example.org")
        self.assertEqual(options["max_void_dns_lookups"], 0)

        options = spfguard.utils.get_spf_options({"ip": "::FFFF:203.0.113.5"})
        self.assertEqual(options["ip"], "203.0.113.5")

    def testValidDomains(self):
        for domain in ["example.com", "_spf.example.com", "a-b.example.co.uk"]:
            self.assertTrue(spfguard.utils.is_valid_domain(domain), domain)
        for domain in [None, "a.", "com", "example.c", "example.com.", "-"]:
            self.assertFalse(spfguard.utils.is_valid_domain(domain), domain)

    def testValidIPs(self):
        for ip in ["192.0.2.1", "::", "::1", "2001:db8:0:0:0:0:0:1", "2001:db8::1"]:
            self.assertTrue(spfguard.utils.is_valid_ip(ip), ip)
        for ip in [None, "", "999.999.999.999", "192.0.2", "example.com", "::g"]:
            self.assertFalse(spfguard.utils.is_valid_ip(ip), ip)

    def testJoinTXTStrings(self):
        join = spfguard.utils.join_txt_strings
        self.assertEqual(
            join('"v=spf1 ip4:192.0.2.1 " "-all"'), "v=spf1 ip4:192.0.2.1 -all"
        )
        self.assertEqual(join("v=spf1 -all"), "v=spf1 -all")
        self.assertIsNone(join(None))

    def testQueryDoH(self):
        session = mock.Mock()
        session.get.return_value.ok = True
        session.get.return_value.json.return_value = {
            "Status": 0,
            "Answer": [
                {
                    "name": "example.com.",
                    "type": 16,
                    "TTL": 300,
                    "data": '"v=spf1 " "-all"',
                }
            ],
        }
        cache = ExpiringDict(max_len=10, max_age_seconds=60)
        for _ in range(2):
            answers = spfguard.utils.query_doh(
                "example.com",
                "txt",
                resolver_url="https://dns.example/resolve",
                session=session,
                cache=cache,
            )
            self.assertEqual(
                answers,
                [
                    {
                        "name": "example.com.",
                        "type": "TXT",
                        "TTL": 300,
                        "data": "v=spf1 -all",
                    }
                ],
            )
        session.get.assert_called_once_with(
            "https://dns.example/resolve",
            params={"name": "example.com", "type": "TXT"},
            timeout=DEFAULT_HTTP_TIMEOUT,
        )

    def testQueryDoHTemplate(self):
        url, params = spfguard.utils.build_doh_request(
            "example.com", "MX", "https://dns.example/{domain}/{type}"
        )
        self.assertEqual(url, "https://dns.example/example.com/MX")
        self.assertIsNone(params)

    def testQueryDoHFailure(self):
        session = mock.Mock()
        session.get.return_value.ok = False
        session.get.return_value.status_code = 500
        answers = spfguard.utils.query_doh(
            "example.com",
            "TXT",
            session=session,
            cache=ExpiringDict(max_len=10, max_age_seconds=60),
        )
        self.assertFalse(answers)

        session.get.return_value.ok = True
        session.get.return_value.json.return_value = {"Status": 3}
        answers = spfguard.utils.query_doh(
            "missing.example.com",
            "TXT",
            session=session,
            cache=ExpiringDict(max_len=10, max_age_seconds=60),
        )
        self.assertFalse(answers)

    def testQueryDNS(self):
        rdata = mock.Mock()
        rdata.strings = [b"v=spf1 ", b"-all"]
        results = mock.MagicMock()
        results.__iter__.return_value = iter([rdata])
        results.rrset.name.to_text.return_value = "example.com"
        results.rrset.ttl = 300
        resolver = mock.Mock()
        resolver.resolve.return_value = results
        answers = spfguard.utils.query_dns(
            "example.com",
            "TXT",
            resolver=resolver,
            cache=ExpiringDict(max_len=10, max_age_seconds=60),
        )
        self.assertEqual(
            answers,
            [{"name": "example.com", "type": "TXT", "TTL": 300, "data": "v=spf1 -all"}],
        )

    def testQueryDNSNXDOMAIN(self):
        resolver = mock.Mock()
        resolver.resolve.side_effect = dns.resolver.NXDOMAIN()
        answers = spfguard.utils.query_dns(
            "missing.example.com",
            "TXT",
            resolver=resolver,
            cache=ExpiringDict(max_len=10, max_age_seconds=60),
        )
        self.assertEqual(answers, [])

    def testResultsOutput(self):
        zone = {"example.com": ["v=spf1 ip4:192.0.2.0/24 -all"]}
        results = spfguard.check_domains(
            ["example.com", "missing.example.com", "notadomain"],
            test_ip,
            lookup=fake_lookup(zone),
        )
        self.assertEqual(len(results), 2)
        csv = spfguard.results_to_csv(results)
        self.assertIn("ip4:192.0.2.0/24 -all", csv)
        self.assertTrue(csv.startswith("domain,valid,dns_lookups"))
        self.assertIn('"valid": true', spfguard.results_to_json(results))


if __name__ == "__main__":
    suite = unittest.TestLoader().loadTestsFromTestCase(Test)
    unittest.TextTestRunner(verbosity=2).run(suite)

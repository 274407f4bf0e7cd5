import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from pktsim.config import (
    SAMPLE_CONFIG_DIR,
    ConfigError,
    TraceRequest,
    build_network_config,
    default_config_dir,
    dns_record_dicts,
    load_json_safe,
    load_network_config,
)
from pktsim.resolver import NameRecord


ROUTES = {"routes": [{"cidr": "0.0.0.0/0", "nextHop": "10.0.0.1", "interface": "eth0"}]}
FIREWALL = {"rules": []}


class TestDNSNormalization(unittest.TestCase):
    def records(self, raw):
        return list(build_network_config(raw, ROUTES, FIREWALL).dns_records)

    def test_top_level_list(self):
        recs = self.records([{"name": "a.test", "type": "A", "address": "10.0.0.1"}])
        self.assertEqual(recs, [NameRecord("a.test", "A", "10.0.0.1")])

    def test_records_key_and_synonyms(self):
        recs = self.records(
            {
                "records": [
                    {"hostname": "a.test", "ip": "10.0.0.1"},
                    {"host": "b.test", "value": "10.0.0.2"},
                    {"name": "c.test", "target": "a.test"},
                    {"name": "d.test", "cname": "c.test"},
                    {"name": "e.test", "type": "cname", "alias": "d.test"},
                ]
            }
        )
        self.assertEqual(
            recs,
            [
                NameRecord("a.test", "A", "10.0.0.1"),
                NameRecord("b.test", "A", "10.0.0.2"),
                NameRecord("c.test", "CNAME", "a.test"),
                NameRecord("d.test", "CNAME", "c.test"),
                NameRecord("e.test", "CNAME", "d.test"),
            ],
        )

    def test_hosts_mapping(self):
        recs = self.records({"hosts": {"a.test": "10.0.0.1", "b.test": "10.0.0.2"}})
        self.assertEqual([r.kind for r in recs], ["A", "A"])
        self.assertEqual(recs[1].value, "10.0.0.2")

    def test_flat_mapping_ignores_non_strings(self):
        raw = {"a.test": "10.0.0.1", "meta": {"version": 1}, "ttl": 300}
        self.assertEqual(dns_record_dicts(raw), [{"name": "a.test", "type": "A", "address": "10.0.0.1"}])

    def test_unknown_shape_is_empty(self):
        self.assertEqual(self.records("nonsense"), [])
        self.assertEqual(self.records(None), [])

    def test_unsupported_record_fails_fast(self):
        with self.assertRaises(ConfigError) as cm:
            self.records([{"name": "mail.test", "type": "MX", "exchange": "mx.test"}])
        self.assertIn("Unsupported DNS record format for mail.test", str(cm.exception))

    def test_malformed_a_record_fails_fast(self):
        with self.assertRaises(ConfigError) as cm:
            self.records([{"name": "a.test", "type": "A"}])
        self.assertIn("Malformed A record for a.test", str(cm.exception))
        with self.assertRaises(ConfigError):
            self.records([{"name": "a.test", "address": "10.0.0.999"}])

    def test_missing_name_fails_fast(self):
        with self.assertRaises(ConfigError):
            self.records([{"type": "A", "address": "10.0.0.1"}])


class TestRoutesAndFirewall(unittest.TestCase):
    def test_route_synonyms(self):
        cfg = build_network_config(
            [],
            [{"networkCidr": "10.0.0.0/24", "nextHopAddress": "10.0.0.1", "outInterface": "eth1", "routerLabel": "R1"}],
            FIREWALL,
        )
        route = cfg.routes[0]
        self.assertEqual((route.cidr, route.next_hop, route.interface, route.router_name), ("10.0.0.0/24", "10.0.0.1", "eth1", "R1"))
        self.assertEqual(route.prefix_length, 24)

    def test_bad_route_cidr_fails_fast(self):
        with self.assertRaises(ConfigError) as cm:
            build_network_config([], {"routes": [{"cidr": "10.0.0.0/33", "nextHop": "x", "interface": "eth0"}]}, FIREWALL)
        self.assertTrue(any("routes[0]" in p for p in cm.exception.problems))

    def test_bare_address_cidrs_are_rejected(self):
        with self.assertRaises(ConfigError) as cm:
            build_network_config(
                [],
                {"routes": [{"cidr": "10.9.9.9", "nextHop": "10.9.9.1", "interface": "eth0"}]},
                {"rules": [{"id": 1, "action": "deny", "protocol": "TCP", "source": "10.9.9.9", "destPortRange": [80, 80]}]},
            )
        problems = cm.exception.problems
        self.assertTrue(any(p.startswith("routes[0].cidr") for p in problems))
        self.assertTrue(any(p.startswith("firewall.rules[0].source") for p in problems))

    def test_firewall_rule_normalization(self):
        cfg = build_network_config(
            [],
            ROUTES,
            {
                "defaultAction": "DENY",
                "rules": [
                    {"id": 1, "action": "Deny", "protocol": "tcp", "source": "0.0.0.0/0", "destPortRange": [22, 22]},
                    {"id": "web", "action": "allow", "sourceCidr": "10.0.0.0/8", "portRange": [80, 80]},
                ],
            },
        )
        first, second = cfg.firewall_rules
        self.assertEqual((first.id, first.action, first.protocol, first.port_range), ("1", "deny", "TCP", (22, 22)))
        self.assertEqual((second.id, second.protocol, second.source), ("web", "ANY", "10.0.0.0/8"))
        self.assertEqual(cfg.firewall_default, "deny")

    def test_firewall_problems_are_collected(self):
        with self.assertRaises(ConfigError) as cm:
            build_network_config(
                [],
                ROUTES,
                {
                    "defaultAction": "maybe",
                    "rules": [
                        {"id": 1, "action": "allow", "source": "0.0.0.0/0", "destPortRange": [90, 80]},
                        {"id": 2, "action": "drop", "source": "0.0.0.0/0", "destPortRange": [80, 80]},
                        {"id": 3, "action": "allow", "source": "0.0.0.0/0", "destPortRange": [80, 80]},
                        {"id": 3, "action": "allow", "source": "0.0.0.0/0", "destPortRange": [81, 81]},
                    ],
                },
            )
        problems = cm.exception.problems
        self.assertTrue(any("defaultAction" in p for p in problems))
        self.assertTrue(any("rules[0]" in p for p in problems))
        self.assertTrue(any("rules[1]" in p for p in problems))
        self.assertTrue(any("duplicate rule id 3" in p for p in problems))

    def test_missing_tables(self):
        with self.assertRaises(ConfigError):
            build_network_config([], {"nope": []}, FIREWALL)


class TestTraceRequest(unittest.TestCase):
    BASE = {
        "sourceAddress": "192.168.1.50",
        "destination": "10.0.0.10",
        "destinationPort": 80,
        "protocol": "TCP",
        "timeToLive": 4,
    }

    def test_valid(self):
        req = TraceRequest.model_validate(self.BASE)
        self.assertEqual((req.source_address, req.destination_port, req.ttl), ("192.168.1.50", 80, 4))

    def test_rejects_missing_and_mistyped(self):
        for key, bad in (
            ("sourceAddress", None),
            ("sourceAddress", "not-an-ip"),
            ("destination", ""),
            ("destinationPort", "80"),
            ("destinationPort", 70000),
            ("protocol", ""),
            ("timeToLive", -1),
            ("timeToLive", "4"),
            ("timeToLive", True),
        ):
            data = dict(self.BASE)
            data[key] = bad
            with self.assertRaises(ValidationError, msg=f"{key}={bad!r}"):
                TraceRequest.model_validate(data)
        data = dict(self.BASE)
        del data["protocol"]
        with self.assertRaises(ValidationError):
            TraceRequest.model_validate(data)


class TestLoading(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def write(self, name, text):
        with open(os.path.join(self.tmp, name), "w", encoding="utf-8") as f:
            f.write(text)

    def test_bom_is_stripped(self):
        self.write("dnsConfig.json", "\ufeff" + json.dumps({"hosts": {"a.test": "10.0.0.1"}}) + "\n")
        self.write("routesConfig.json", json.dumps(ROUTES))
        self.write("firewallConfig.json", json.dumps(FIREWALL))
        cfg = load_network_config(self.tmp)
        self.assertEqual(cfg.dns_records[0], NameRecord("a.test", "A", "10.0.0.1"))

    def test_parse_error_logs_raw_file(self):
        self.write("broken.json", "{not json")
        with self.assertLogs("pktsim.config", level="ERROR") as cm:
            with self.assertRaises(ConfigError):
                load_json_safe(os.path.join(self.tmp, "broken.json"))
        joined = "\n".join(cm.output)
        self.assertIn("---- RAW FILE START ----", joined)
        self.assertIn("{not json", joined)

    def test_default_dir_is_the_shipped_sample(self):
        with patch.dict(os.environ, {"PKTSIM_CONFIG_DIR": ""}):
            self.assertEqual(default_config_dir(), SAMPLE_CONFIG_DIR)
            cfg = load_network_config()
        self.assertTrue(any(r.name == "web.local" for r in cfg.dns_records))
        with patch.dict(os.environ, {"PKTSIM_CONFIG_DIR": self.tmp}):
            self.assertEqual(default_config_dir(), self.tmp)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_network_config(self.tmp)


if __name__ == "__main__":
    unittest.main()

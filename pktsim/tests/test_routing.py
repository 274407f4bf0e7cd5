import unittest

from pktsim.routing import Route, RouteTable, select_route


class TestRouting(unittest.TestCase):
    def test_longest_prefix_wins(self):
        routes = [
            Route("10.0.0.0/8", "10.255.255.254", "eth2", "Core"),
            Route("10.0.0.0/24", "10.0.0.1", "eth1", "Router-1"),
            Route("10.0.0.0/16", "10.0.255.254", "eth3", "Dist"),
        ]
        best = select_route(routes, "10.0.0.10")
        self.assertEqual(best.router_name, "Router-1")
        self.assertEqual(best.prefix_length, 24)

        self.assertEqual(select_route(routes, "10.0.7.1").router_name, "Dist")
        self.assertEqual(select_route(routes, "10.200.0.1").router_name, "Core")

    def test_specific_route_beats_default(self):
        routes = [
            Route("0.0.0.0/0", "203.0.113.1", "wan0", "Edge"),
            Route("192.168.1.0/24", "192.168.1.1", "eth0", "LAN"),
        ]
        self.assertEqual(select_route(routes, "192.168.1.77").router_name, "LAN")
        self.assertEqual(select_route(routes, "8.8.8.8").router_name, "Edge")

    def test_tie_keeps_first_declared(self):
        routes = [
            Route("10.1.0.0/16", "10.1.0.1", "eth1", "First"),
            Route("10.1.0.0/16", "10.1.0.2", "eth2", "Second"),
        ]
        self.assertEqual(select_route(routes, "10.1.2.3").router_name, "First")

    def test_no_route_without_default(self):
        table = RouteTable([Route("10.0.0.0/24", "10.0.0.1", "eth1")])
        self.assertIsNone(table.lookup("172.16.0.1"))
        self.assertIsNone(RouteTable([]).lookup("10.0.0.1"))

    def test_show_lists_routes(self):
        table = RouteTable([Route("10.0.0.0/24", "10.0.0.1", "eth1")])
        out = table.show()
        self.assertIn("10.0.0.0/24", out)
        self.assertIn("eth1", out)


if __name__ == "__main__":
    unittest.main()

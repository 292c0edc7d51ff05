#!/usr/bin/env python3

import requests
import json
import argparse
import time


class ChannelHealthClient:
    def __init__(self, base_url="http://localhost:8086", api_token=None):
        self.base_url = base_url
        self.headers = {"X-API-Token": api_token} if api_token else {}

    def _get(self, path, **params):
        response = requests.get(f"{self.base_url}{path}", headers=self.headers, params=params or None)
        response.raise_for_status()
        return response.json()

    def _send(self, method, path, payload=None):
        response = requests.request(method, f"{self.base_url}{path}", headers=self.headers, json=payload)
        response.raise_for_status()
        return response.json()

    def list_channels(self, online=False, validated=False):
        """List channels"""
        params = {}
        if online:
            params["online"] = "true"
        if validated:
            params["validated"] = "true"
        return self._get("/channels", **params)

    def get_channel(self, channel_id):
        """Get a channel with its health"""
        return self._get(f"/channels/{channel_id}")

    def check_channel(self, channel_id):
        """Re-check one channel now"""
        return self._send("POST", f"/channels/{channel_id}/check")

    def run_sweep(self):
        """Run a full health sweep"""
        return self._send("POST", "/channels/health-check")

    def set_validated(self, channel_id, validated):
        """Toggle the admin validation flag"""
        return self._send("PUT", f"/channels/{channel_id}/validation", {"validated": validated})

    def get_health(self):
        """Get service health"""
        return self._get("/health")

    def print_summary(self):
        """Print a channel liveness summary"""
        result = self.list_channels()
        channels = result["channels"]
        offline = [c for c in channels if not c["health"]["is_online"]]
        degraded = [c for c in channels
                    if c["health"]["is_online"] and c["health"]["consecutive_failures"] > 0]
        scheduler = self.get_health()["scheduler"]

        print("=" * 60)
        print("CHANNEL HEALTH - SUMMARY")
        print("=" * 60)
        print(f"Channels: {result['total']}")
        print(f"Online: {result['total'] - len(offline)}")
        print(f"Offline: {len(offline)}")
        print(f"Failing but still listed: {len(degraded)}")
        print(f"Sweeps completed: {scheduler['sweeps_completed']}")
        print(f"Last sweep: {scheduler['last_sweep_at'] or 'never'}")
        if scheduler["last_error"]:
            print(f"Last error: {scheduler['last_error']}")
        print()

        if offline:
            print("OFFLINE CHANNELS:")
            print("-" * 60)
            for c in offline:
                print(f"{c['channel']['id']}: {c['channel']['name']} ({c['channel']['country']})")
                print(f"  URL: {c['channel']['source_url'][:60]}")
                print(f"  Failures: {c['health']['consecutive_failures']}")
                print(f"  Last checked: {c['health']['last_checked']}")
            print()


def main():
    parser = argparse.ArgumentParser(description="channel-health Client")
    parser.add_argument("--base-url", default="http://localhost:8086",
                        help="Base URL of the channel-health server")
    parser.add_argument("--token", help="API token for admin endpoints")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="List channels")
    list_parser.add_argument("--online", action="store_true", help="Only online channels")
    list_parser.add_argument("--validated", action="store_true", help="Only validated channels")

    info_parser = subparsers.add_parser("info", help="Get channel information")
    info_parser.add_argument("channel_id", help="Channel ID")

    check_parser = subparsers.add_parser("check", help="Re-check a channel now")
    check_parser.add_argument("channel_id", help="Channel ID")

    subparsers.add_parser("sweep", help="Run a full health sweep")

    validate_parser = subparsers.add_parser("validate", help="Set the validation flag")
    validate_parser.add_argument("channel_id", help="Channel ID")
    toggle = validate_parser.add_mutually_exclusive_group(required=True)
    toggle.add_argument("--on", dest="validated", action="store_true")
    toggle.add_argument("--off", dest="validated", action="store_false")

    subparsers.add_parser("health", help="Check service health")

    subparsers.add_parser("monitor", help="Monitor in real-time")

    args = parser.parse_args()

    client = ChannelHealthClient(args.base_url, args.token)

    try:
        if args.command == "list":
            result = client.list_channels(args.online, args.validated)
            if result["channels"]:
                for c in result["channels"]:
                    status = "online" if c["health"]["is_online"] else "OFFLINE"
                    print(f"{c['channel']['id']}: {c['channel']['name']} [{status}]")
            else:
                print("No channels")

        elif args.command == "info":
            print(json.dumps(client.get_channel(args.channel_id), indent=2))

        elif args.command == "check":
            print(json.dumps(client.check_channel(args.channel_id), indent=2))

        elif args.command == "sweep":
            print(json.dumps(client.run_sweep(), indent=2))

        elif args.command == "validate":
            print(json.dumps(client.set_validated(args.channel_id, args.validated), indent=2))

        elif args.command == "health":
            print(json.dumps(client.get_health(), indent=2))

        elif args.command == "monitor":
            print("Monitoring channel-health (Press Ctrl+C to stop)...")
            try:
                while True:
                    client.print_summary()
                    time.sleep(30)
                    print("\n" + "="*60 + "\n")
            except KeyboardInterrupt:
                print("\nMonitoring stopped.")

        else:
            parser.print_help()

    except requests.RequestException as e:
        print(f"Error: {e}")


if __name__ == "__main__":
    main()

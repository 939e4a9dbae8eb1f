#!/usr/bin/env python3
"""
Smoke checks against a running SpotFinder API (start it with main.py first)
"""

import os
import sys
import time

import requests

BASE_URL = os.getenv('SPOTFINDER_URL', 'http://localhost:5001')


def check_api_server():
    """Check that the API server is responding"""
    try:
        response = requests.get(f'{BASE_URL}/', timeout=5)
        if response.status_code == 200 and response.json().get('status') == 'healthy':
            print("✅ API Server is running and healthy")
            return True
        print(f"❌ API Server returned status code: {response.status_code}")
        return False
    except requests.exceptions.ConnectionError:
        print(f"❌ Cannot connect to API server ({BASE_URL})")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ Error checking API server: {e}")
        return False


def check_geocoding():
    """Check the address suggestion endpoint"""
    try:
        response = requests.post(f'{BASE_URL}/api/geocode', json={'query': 'Times Square, New York'}, timeout=15)
        data = response.json()
        if response.status_code == 200 and data.get('success') and data.get('data'):
            first = data['data'][0]
            print(f"✅ Geocoding works: {first['display_name']} ({first['lat']:.4f}, {first['lng']:.4f})")
            return True
        print(f"❌ Geocoding failed: {data.get('error', 'no results')}")
        return False
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"❌ Error checking geocoding: {e}")
        return False


def check_search_cycle():
    """Add two participants, wait for the search to settle and print the venues"""
    participants = [
        {'name': 'Ana', 'lat': 40.7580, 'lng': -73.9855},
        {'name': 'Ben', 'lat': 40.7484, 'lng': -73.9857},
    ]
    added = []
    try:
        for p in participants:
            response = requests.post(f'{BASE_URL}/api/participants', json=p, timeout=10)
            added.append(response.json()['data']['id'])

        session = {}
        for _ in range(30):
            session = requests.get(f'{BASE_URL}/api/session', timeout=10).json()['data']
            if session['state'] in ('ready', 'failed'):
                break
            time.sleep(1)

        if session.get('state') != 'ready':
            print(f"❌ Search did not complete: state={session.get('state')} error={session.get('error')}")
            return False
        print(f"✅ Search returned {len(session['venues'])} venue(s)")
        for venue in session['venues'][:5]:
            print(f"   - {venue['name']} ({venue['category']}, {venue['distance_m']:.0f} m)")
        return True
    except (requests.exceptions.RequestException, KeyError, ValueError) as e:
        print(f"❌ Error running search: {e}")
        return False
    finally:
        for participant_id in added:
            requests.delete(f'{BASE_URL}/api/participants/{participant_id}', timeout=10)


def main():
    print("🧪 Checking SpotFinder setup")
    print("="*50)

    checks = [
        ("API Server Health", check_api_server),
        ("Geocoding", check_geocoding),
        ("Search Cycle", check_search_cycle),
    ]

    passed = 0
    for name, check in checks:
        print(f"\n🔍 Checking {name}...")
        if check():
            passed += 1

    print("\n" + "="*50)
    print(f"📊 Results: {passed}/{len(checks)} checks passed")
    return passed == len(checks)


if __name__ == '__main__':
    sys.exit(0 if main() else 1)

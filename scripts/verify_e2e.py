#!/usr/bin/env python3
import asyncio
import logging
import os
import subprocess
import sys
import time

import httpx

logging.basicConfig(level=logging.INFO)

sys.path.append(os.getcwd())

from relay_sdk import ConsumerStatus, RelayClient

API_PORT = 8003
API_URL = f"http://localhost:{API_PORT}"

async def verify():
    # 1. Start Server
    print("Starting API Server...")
    env = dict(os.environ, RELAY_HELLO_WORLD_DELAY_SECONDS="1")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "relay.main:app", "--port", str(API_PORT)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )

    try:
        # Wait for health
        async with httpx.AsyncClient() as client:
            start = time.time()
            ready = False
            while time.time() - start < 10:
                try:
                    resp = await client.get(f"{API_URL}/health")
                    if resp.status_code == 200:
                        ready = True
                        break
                except httpx.HTTPError:
                    await asyncio.sleep(0.5)

        if not ready:
            print("Failed to start API server")
            sys.exit(1)
        print("API Server Ready.")

        async with RelayClient(API_URL) as relay:
            # 2. Trigger and follow
            transitions = []
            state = await relay.run(on_update=lambda s: transitions.append(s.status))
            print(f"Transitions: {[str(t) for t in transitions]}")
            print(f"Final state: status={state.status} message={state.message!r}")
            assert state.status is ConsumerStatus.COMPLETED
            assert state.message == "Hello, James!"

            # 3. Webhook payload
            data = await relay.send_webhook({"name": "webhook"})
            state = await relay.watch(data["taskId"])
            print(f"Webhook run: status={state.status} message={state.message!r}")
            assert state.status is ConsumerStatus.COMPLETED

            # 4. Unknown run -> synthetic ERROR
            state = await relay.watch("run_does_not_exist")
            print(f"Unknown run: status={state.status} error={state.error!r}")
            assert state.status is ConsumerStatus.ERRORED and state.error

        print("SUCCESS: relay verified end to end.")

    finally:
        print("Stopping API Server...")
        proc.terminate()
        try:
            outs, errs = proc.communicate(timeout=5)
            if errs:
                print(f"Server STDERR:\n{errs.decode()}")
        except subprocess.TimeoutExpired:
            proc.kill()

if __name__ == "__main__":
    try:
        asyncio.run(verify())
    except KeyboardInterrupt:
        pass

import multiprocessing
import os
import random
import time

import pytest

requests = pytest.importorskip("requests", reason="requests not installed; skipping process-level concurrency test")

if os.getenv("STEPJS_STRESS") != "1":
    pytest.skip("set STEPJS_STRESS=1 to run the process-level stress test", allow_module_level=True)


def _start_server(port: int):
    # run uvicorn in this process hosting the FastAPI app
    import uvicorn
    from backend.app import main

    # uvicorn.run is blocking; run in this process so other processes can use HTTP
    uvicorn.run(main.app, host="127.0.0.1", port=port, log_level="warning")


def _worker(port: int, n_requests: int, q: multiprocessing.Queue, seed: int):
    random.seed(seed)
    sess = requests.Session()
    for _ in range(n_requests):
        kind = random.choice(["log", "loop", "session"])
        try:
            if kind == "log":
                times = random.randint(1, 50)
                code = "\n".join(f"console.log({i});" for i in range(times))
                r = sess.post(f"http://127.0.0.1:{port}/run", json={"code": code, "settings": {"max_output_lines": 20}}, timeout=10)
                q.put((r.status_code, r.json()))
            elif kind == "loop":
                times = random.randint(1, 200)
                code = f"let s = 0;\nfor (let i = 0; i < {times}; i++) {{\n  s += i;\n}}"
                r = sess.post(f"http://127.0.0.1:{port}/run", json={"code": code, "settings": {"max_steps": 5000}}, timeout=10)
                q.put((r.status_code, r.json()))
            else:
                r = sess.post(f"http://127.0.0.1:{port}/sessions", json={"code": "let a = 1;\na++;"}, timeout=10)
                sid = r.json()["session_id"]
                sess.post(f"http://127.0.0.1:{port}/sessions/{sid}/step", timeout=10)
                r = sess.post(f"http://127.0.0.1:{port}/sessions/{sid}/run", timeout=10)
                q.put((r.status_code, r.json()))
        except requests.RequestException as e:
            q.put(("ERR", str(e)))


@pytest.mark.stress
def test_process_level_concurrency_stress():
    # start a real HTTP server in a separate process to exercise process boundaries
    port = int(os.getenv("STEPJS_STRESS_PORT", "8001"))
    server = multiprocessing.Process(target=_start_server, args=(port,), daemon=True)
    server.start()

    ready = False
    for _ in range(80):
        try:
            r = requests.get(f"http://127.0.0.1:{port}/docs", timeout=1)
            if r.status_code == 200:
                ready = True
                break
        except requests.RequestException:
            time.sleep(0.125)
    if not ready:
        server.terminate()
        pytest.skip("uvicorn server failed to start")

    n_workers = int(os.getenv("STEPJS_STRESS_WORKERS", "8"))
    n_requests_per_worker = int(os.getenv("STEPJS_STRESS_REQS_PER_WORKER", "10"))
    q: multiprocessing.Queue = multiprocessing.Queue()
    workers = [
        multiprocessing.Process(target=_worker, args=(port, n_requests_per_worker, q, i))
        for i in range(n_workers)
    ]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=30)

    results = []
    while not q.empty():
        results.append(q.get())

    server.terminate()
    server.join(timeout=5)

    expected = n_workers * n_requests_per_worker
    assert len(results) == expected, f"expected {expected} results, got {len(results)}"
    for status, body in results:
        assert status == 200, f"bad status: {status}"
        assert "output" in body and "warnings" in body and "variables" in body and "error" in body

"""Child process runner tests."""
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from blackbox_env.drain import StreamDrainPool
from blackbox_env.errors import ProcessRunnerError, ProcessTimeoutError
from blackbox_env.process import ProcessParameters, ProcessResult, run_process


def python_params(tmp_path: Path, code: str, **kwargs) -> ProcessParameters:
    return ProcessParameters(
        name=sys.executable,
        arguments=["-c", code],
        work_dir=tmp_path,
        **kwargs,
    )


def test_run_process_captures_both_streams(tmp_path: Path, drain_pool: StreamDrainPool):
    code = "import sys; print('out 1'); print('out 2'); print('err 1', file=sys.stderr)"

    result = run_process(python_params(tmp_path, code), drain_pool)

    assert result.exit_code == 0
    assert result.stdout_lines == ["out 1", "out 2"]
    assert result.stderr_lines == ["err 1"]
    assert result.out_string() == "out 1\nout 2"
    assert result.err_string() == "err 1"


def test_run_process_large_output_does_not_block(tmp_path: Path, drain_pool: StreamDrainPool):
    """Both pipes are drained while the process runs, so large output never stalls it"""
    code = (
        "import sys\n"
        "for i in range(20000):\n"
        "    sys.stdout.write(f'{i:08d} stdout line\\n')\n"
        "    sys.stderr.write(f'{i:08d} stderr line\\n')\n"
    )

    result = run_process(python_params(tmp_path, code, timeout=60), drain_pool)

    assert len(result.stdout_lines) == 20000
    assert len(result.stderr_lines) == 20000
    assert result.stdout_lines[-1] == "00019999 stdout line"
    assert result.stderr_lines[0] == "00000000 stderr line"


def test_run_process_in_work_dir(tmp_path: Path, drain_pool: StreamDrainPool):
    result = run_process(python_params(tmp_path, "import os; print(os.getcwd())"), drain_pool)

    assert Path(result.stdout_lines[0]).resolve() == tmp_path.resolve()


def test_run_process_uses_env(tmp_path: Path, drain_pool: StreamDrainPool):
    params = python_params(
        tmp_path,
        "import os; print(os.environ['BLACKBOX_MARKER'])",
        env={"BLACKBOX_MARKER": "marked"},
    )

    assert run_process(params, drain_pool).stdout_lines == ["marked"]


def test_unexpected_exit_code(tmp_path: Path, drain_pool: StreamDrainPool):
    code = "import sys; print('partial'); sys.exit(3)"

    with pytest.raises(ProcessRunnerError) as exc_info:
        run_process(python_params(tmp_path, code), drain_pool)

    assert exc_info.value.exit_code == 3
    assert exc_info.value.stdout == "partial"
    assert "expected exit code 0, got 3" in str(exc_info.value)


def test_expected_non_zero_exit_code(tmp_path: Path, drain_pool: StreamDrainPool):
    params = python_params(tmp_path, "import sys; sys.exit(3)", expected_exit_code=3)

    assert run_process(params, drain_pool).exit_code == 3


def test_any_exit_code(tmp_path: Path, drain_pool: StreamDrainPool):
    params = python_params(tmp_path, "import sys; sys.exit(7)", expected_exit_code=None)

    assert run_process(params, drain_pool).exit_code == 7


def test_expect_empty_error(tmp_path: Path, drain_pool: StreamDrainPool):
    params = python_params(
        tmp_path,
        "import sys; print('warning', file=sys.stderr)",
        expect_empty_error=True,
    )

    with pytest.raises(ProcessRunnerError) as exc_info:
        run_process(params, drain_pool)
    assert exc_info.value.stderr == "warning"


def test_timeout_kills_process(tmp_path: Path, drain_pool: StreamDrainPool):
    code = "import time; print('started', flush=True); time.sleep(60)"

    started = time.monotonic()
    with pytest.raises(ProcessTimeoutError) as exc_info:
        run_process(python_params(tmp_path, code, timeout=1), drain_pool)

    assert time.monotonic() - started < 15
    assert exc_info.value.timeout == 1
    assert exc_info.value.stdout == "started"


def test_missing_binary(tmp_path: Path, drain_pool: StreamDrainPool):
    params = ProcessParameters(name=str(tmp_path / "no-such-tool"), arguments=[], work_dir=tmp_path)

    with pytest.raises(FileNotFoundError):
        run_process(params, drain_pool)


def test_process_result_strings():
    result = ProcessResult(exit_code=0, stdout_lines=[], stderr_lines=["a", "b"])

    assert result.out_string() == ""
    assert result.err_string() == "a\nb"


def test_run_process_on_shut_down_pool_reaps_child(tmp_path: Path, monkeypatch):
    """A child started on a dead pool is killed, waited on and its pipes closed"""
    started = []
    real_popen = subprocess.Popen

    def recording_popen(*args, **kwargs):
        process = real_popen(*args, **kwargs)
        started.append(process)
        return process

    monkeypatch.setattr(subprocess, "Popen", recording_popen)
    pool = StreamDrainPool()
    pool.shutdown()

    with pytest.raises(RuntimeError):
        run_process(python_params(tmp_path, "import time; time.sleep(30)"), pool)

    process = started[0]
    assert process.returncode is not None
    assert process.stdout.closed
    assert process.stderr.closed


def test_concurrent_processes_with_stderr_first(tmp_path: Path, drain_pool: StreamDrainPool):
    """Two processes filling stderr before stdout both finish on the shared pool"""
    code = (
        "import sys\n"
        "for i in range(2000):\n"
        "    sys.stderr.write(f'{i:08d} ' + 'e' * 91 + '\\n')\n"
        "sys.stderr.flush()\n"
        "for i in range(2000):\n"
        "    sys.stdout.write(f'{i:08d} ' + 'o' * 91 + '\\n')\n"
    )
    results = []
    errors = []

    def run():
        try:
            results.append(run_process(python_params(tmp_path, code, timeout=30), drain_pool))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=run) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert not errors
    assert len(results) == 2
    for result in results:
        assert len(result.stderr_lines) == 2000
        assert len(result.stdout_lines) == 2000
        assert result.stdout_lines[-1].startswith("00001999 ")

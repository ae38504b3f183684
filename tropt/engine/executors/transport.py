"""Local message-passing transport.

Each worker owns an inbox queue; all workers share one outbox read by the
master. Workers are threads or processes running :func:`worker_loop`, so the
master only ever talks to them through messages, as it would over MPI.

Message flow::

    MODEL_BROADCAST  master -> all workers   evaluator (once, before any case)
    CASE_UNEVAL      master -> one worker    case dict, variables only
    CASE_EVAL        worker -> master        case dict with objective or error
    TERMINATE        master -> one worker    no payload; worker exits
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, Literal, NamedTuple

from tropt.core.case import Case, EvalState

_LOGGER = logging.getLogger(__name__)


class MsgTag(IntEnum):
    MODEL_BROADCAST = 1
    CASE_UNEVAL = 2
    CASE_EVAL = 3
    TERMINATE = 4


class Message(NamedTuple):
    tag: MsgTag
    source: int
    payload: Any = None


MASTER_RANK = 0


def evaluate_payload(evaluator: Any, payload: dict[str, Any]) -> dict[str, Any]:
    """Evaluate a serialized case and return it serialized, evaluated or failed."""
    case = Case.from_dict(payload)
    if case.state is EvalState.PENDING:
        case.mark_queued()
    if evaluator is None:
        case.mark_failed("No model broadcast received before case")
        return case.to_dict()
    try:
        case.mark_evaluated(evaluator.evaluate(case))
    except Exception as exc:
        case.mark_failed(f"{type(exc).__name__}: {exc}")
    return case.to_dict()


def worker_loop(rank: int, inbox: Any, outbox: Any) -> None:
    """Serve one worker rank until ``TERMINATE`` arrives."""
    evaluator = None
    while True:
        msg: Message = inbox.get()
        if msg.tag == MsgTag.TERMINATE:
            return
        if msg.tag == MsgTag.MODEL_BROADCAST:
            evaluator = msg.payload
        elif msg.tag == MsgTag.CASE_UNEVAL:
            outbox.put(Message(MsgTag.CASE_EVAL, rank, evaluate_payload(evaluator, msg.payload)))


@dataclass
class LocalTransport:
    """Thread- or process-backed worker pool speaking the message protocol.

    Parameters
    ----------
    num_workers:
        Number of worker ranks. ``"auto"`` uses a fixed default of 4.
    mode:
        "auto" (default), "thread", or "process". Process mode requires a
        picklable evaluator.
    join_timeout_s:
        How long :meth:`close` waits for each worker to exit.
    """

    num_workers: int | Literal["auto"] = "auto"
    mode: Literal["auto", "thread", "process"] = "auto"
    join_timeout_s: float = 5.0
    _inboxes: dict[int, Any] = field(default_factory=dict, init=False, repr=False)
    _outbox: Any = field(default=None, init=False, repr=False)
    _workers: list[Any] = field(default_factory=list, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    _WORKERS_DEFAULT: ClassVar[int] = 4

    def __post_init__(self) -> None:
        if self.num_workers == "auto" or self.num_workers == 0:
            self.num_workers = self._WORKERS_DEFAULT
        else:
            self.num_workers = int(self.num_workers)
        if self.num_workers < 1:
            raise ValueError("num_workers must be positive")

        mode = "thread" if self.mode == "auto" else self.mode
        if mode not in ("thread", "process"):
            raise ValueError(f"Unknown transport mode: {self.mode}")
        self.mode = mode

        if mode == "thread":
            self._outbox = queue.Queue()
            for rank in range(1, self.num_workers + 1):
                inbox: Any = queue.Queue()
                worker: Any = threading.Thread(
                    target=worker_loop,
                    args=(rank, inbox, self._outbox),
                    name=f"tropt-worker-{rank}",
                    daemon=True,
                )
                self._inboxes[rank] = inbox
                self._workers.append(worker)
        else:
            ctx = multiprocessing.get_context()
            self._outbox = ctx.Queue()
            for rank in range(1, self.num_workers + 1):
                inbox = ctx.Queue()
                worker = ctx.Process(
                    target=worker_loop,
                    args=(rank, inbox, self._outbox),
                    name=f"tropt-worker-{rank}",
                    daemon=True,
                )
                self._inboxes[rank] = inbox
                self._workers.append(worker)

        for worker in self._workers:
            worker.start()
        _LOGGER.debug("Started %d %s worker(s)", self.num_workers, mode)

    def broadcast(self, tag: MsgTag, payload: Any) -> None:
        for rank in self._inboxes:
            self.send(rank, tag, payload)

    def send(self, rank: int, tag: MsgTag, payload: Any) -> None:
        if self._closed:
            raise RuntimeError("Transport is closed")
        if rank not in self._inboxes:
            raise ValueError(f"Unknown worker rank: {rank}")
        self._inboxes[rank].put(Message(tag, MASTER_RANK, payload))

    def recv(self, timeout_s: float | None = None) -> Message:
        """Return the next worker message; ``TimeoutError`` if ``timeout_s`` expires."""
        try:
            return self._outbox.get(timeout=timeout_s)
        except queue.Empty:
            raise TimeoutError(f"No worker message within {timeout_s}s") from None

    def close(self) -> None:
        """Stop every worker and wait for it to exit."""
        if self._closed:
            return
        for rank in self._inboxes:
            self._inboxes[rank].put(Message(MsgTag.TERMINATE, MASTER_RANK))
        self._closed = True
        for worker in self._workers:
            worker.join(timeout=self.join_timeout_s)
            if worker.is_alive():
                _LOGGER.warning("Worker %s did not exit within %.1fs", worker.name, self.join_timeout_s)
                if self.mode == "process":
                    worker.terminate()

    def __enter__(self) -> LocalTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

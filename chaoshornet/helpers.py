from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from logzero import logger

from chaoshornet.common import DeadlineExceeded

# Engine calls block on a socket read. Running them on a pool lets the caller
# give up at its deadline even when the engine never answers.
_pool = ThreadPoolExecutor(thread_name_prefix="chaoshornet-call")


def _late_result_handler(name, on_late_result):
    def handle(future):
        if future.cancelled() or future.exception() is not None:
            return
        logger.debug("Late result from %s arrived after its deadline", name)
        try:
            on_late_result(future.result())
        except Exception as e:
            logger.error("Failed to release late result from %s", name)
            logger.exception(e)
    return handle


def run(callable, timeout: float, *args, on_late_result=None, **kwargs):
    """
    Run a blocking engine call with a deadline.

    Returns whatever the callable returns and re-raises whatever it raises.
    If the call has not completed after timeout seconds DeadlineExceeded is
    raised. The worker thread is abandoned, not interrupted; it ends when the
    engine finally answers or the connection drops.

    A call that succeeds after its deadline may still hold a resource the
    caller never sees (an open stream, a container the engine went on to
    create). Pass on_late_result to release it: it is called with the late
    return value on the worker thread. Errors it raises are logged.

    :param callable: A blocking function, typically a docker APIClient method
    :type callable: Callable
    :param timeout: Number of seconds the call is allowed to take.
    :type timeout: float
    :param *args: Expanded list of arguments to pass to the callable
    :type *args: Any
    :param on_late_result: Called with the result of a call that completes
        after its deadline. Optional. (Default: None)
    :type on_late_result: Callable
    :param **kwargs: Expanded keyword arguments to pass to the callable
    :type **kwargs: Any
    :return: Any
    """
    if timeout is None or timeout <= 0:
        raise ValueError("timeout must be a positive number of seconds")
    future = _pool.submit(callable, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        # Either the callable raised a TimeoutError of its own, or it finished
        # just after the wait gave up. Both are reported as it completed.
        if future.done():
            return future.result()
        future.cancel()
        name = getattr(callable, "__name__", repr(callable))
        if on_late_result is not None:
            future.add_done_callback(_late_result_handler(name, on_late_result))
        logger.error("Call to %s timed out after %s seconds!!!", name, timeout)
        raise DeadlineExceeded("call to {} exceeded its {} second " \
                               "deadline".format(name, timeout))

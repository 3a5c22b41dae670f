from companion.support.mixins import CommonEqualityMixin


class RetryStrategy:
    def __call__(self):
        return 0


class FixedRetryStrategy(RetryStrategy, CommonEqualityMixin):

    def __init__(self, retry_period):
        """
        :param retry_period: The delay in seconds before each retry.
        """
        self.retry_period = retry_period

    def __call__(self):
        return self.retry_period


class RetryContext(CommonEqualityMixin):
    """
    The bookkeeping for one sequence of connection attempts.

    A fresh context is created each time a connection sequence begins, and is discarded once the
    sequence connects or gives up. The context carries no I/O, so the counting rules can be
    checked on their own.

    :param max_attempts:  the number of failed attempts after which the sequence may escalate
    :param launched_once: True when the companion process has already been started for this sequence
    """

    def __init__(self, max_attempts, launched_once=False):
        self.attempt_count = 0
        self.launched_once = launched_once
        self.max_attempts = max_attempts

    def record_failure(self):
        self.attempt_count += 1
        return self.attempt_count

    def claim_launch(self):
        """
        :return: True exactly once per context, on the first failure, if the process was not
            already launched for this sequence.
        """
        if self.launched_once or self.attempt_count != 1:
            return False
        self.launched_once = True
        return True

    @property
    def exhausted(self):
        return self.attempt_count >= self.max_attempts

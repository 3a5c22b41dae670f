import unittest

from hamcrest import assert_that, is_

from companion.outcome import Board, CallResult, ErrorKind, Outcome, classify_upload_error, compile_error_detail


class CallResultTest(unittest.TestCase):

    def test_truthiness_follows_success(self):
        assert_that(bool(CallResult.ok()), is_(True))
        assert_that(bool(CallResult.failed("boom")), is_(False))

    def test_transport_failure_carries_kind(self):
        result = CallResult.failed("timed out", ErrorKind.TIMEOUT)
        assert_that(result.error_kind, is_(ErrorKind.TIMEOUT))
        assert_that(result.value, is_(None))


class UploadErrorTest(unittest.TestCase):

    def test_compile_error_carries_compiler_output(self):
        outcome = classify_upload_error({'title': 'COMPILE_ERROR', 'stdErr': 'expected ;'})
        assert_that(outcome, is_(Outcome.failure(ErrorKind.COMPILE_ERROR, 'expected ;')))

    def test_board_not_ready(self):
        assert_that(classify_upload_error({'title': 'BOARD_NOT_READY'}),
                    is_(Outcome.failure(ErrorKind.BOARD_NOT_READY)))

    def test_anything_else_is_generic_upload_error(self):
        assert_that(classify_upload_error('avrdude: stk500_recv()'),
                    is_(Outcome.failure(ErrorKind.UPLOAD_ERROR, 'avrdude: stk500_recv()')))
        assert_that(classify_upload_error({'title': 'OTHER'}).error_kind, is_(ErrorKind.UPLOAD_ERROR))

    def test_compile_error_detail_without_std_err(self):
        assert_that(compile_error_detail({'title': 'COMPILE_ERROR'}), is_({'title': 'COMPILE_ERROR'}))


class BoardTest(unittest.TestCase):

    def test_equality(self):
        assert_that(Board('atmega328'), is_(Board('atmega328')))
        assert_that(Board('atmega328').mcu, is_('atmega328'))


if __name__ == '__main__':  # pragma no cover
    unittest.main()

from receptionist.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("sent")
        assert result.ok is True
        assert result.value == "sent"
        assert result.error is None

    def test_success_without_value(self):
        result = Result.success()
        assert result.ok is True
        assert result.value is None


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Provider rejected message", "send_error")
        assert result.ok is False
        assert result.error == "Provider rejected message"
        assert result.error_code == "send_error"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success({"message_id": 1}).unwrap_or({}) == {"message_id": 1}

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "code").unwrap_or("default") == "default"

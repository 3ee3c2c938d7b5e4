from ussd.core.path_decoder import decode_path, last_token


def test_empty_text_is_first_contact():
    assert decode_path("") == ()
    assert decode_path(None) == ()


def test_decode_splits_on_star():
    assert decode_path("2*+15551234567*1234") == ("2", "+15551234567", "1234")


def test_decode_is_deterministic_and_keeps_empty_tokens():
    text = "1**x*"
    assert decode_path(text) == decode_path(text) == ("1", "", "x", "")


def test_last_token():
    assert last_token(()) == ""
    assert last_token(("2", "+15551234567")) == "+15551234567"

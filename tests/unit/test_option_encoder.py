from dcompose.RUNNERS.option_encoder import OptionEncoder


class TestEncode:
    """Tests for OptionEncoder.encode."""

    def test_short_flag(self):
        assert OptionEncoder().encode({"d": True}) == ["-d"]

    def test_short_option_with_value(self):
        assert OptionEncoder().encode({"f": "v"}) == ["-f", "v"]

    def test_short_falsy_is_omitted(self):
        assert OptionEncoder().encode({"d": False}) == []
        assert OptionEncoder().encode({"d": None}) == []

    def test_long_flag_is_hyphenated(self):
        assert OptionEncoder().encode({"no_cache": True}) == ["--no-cache"]

    def test_long_option_with_value(self):
        assert OptionEncoder().encode({"timeout": 5}) == ["--timeout=5"]
        assert OptionEncoder().encode({"exit_code_from": "web"}) == ["--exit-code-from=web"]

    def test_long_falsy_is_omitted(self):
        assert OptionEncoder().encode({"no_deps": False, "user": None}) == []

    def test_zero_is_a_value(self):
        assert OptionEncoder().encode({"timeout": 0, "t": 0}) == ["--timeout=0", "-t", "0"]

    def test_insertion_order(self):
        options = {"timeout": 3, "d": True, "f": "x.yml", "no_build": True}
        assert OptionEncoder().encode(options) == ["--timeout=3", "-d", "-f", "x.yml", "--no-build"]

    def test_negate_false(self):
        encoder = OptionEncoder(negate_false=True)
        assert encoder.encode({"cache": False}) == ["--no-cache"]
        assert encoder.encode({"cache": None}) == []
        # short options have no negated form
        assert encoder.encode({"d": False}) == []


def test_command_flattens_arguments():
    argv = OptionEncoder().command("run", {"rm": True}, [{"e": "A=1"}, {"e": "B=2"}], "web", ["ls", "-l"])
    assert argv == ["run", "--rm", "-e", "A=1", "-e", "B=2", "web", "ls", "-l"]


def test_command_stringifies_words():
    assert OptionEncoder().command("port", "web", 8080) == ["port", "web", "8080"]

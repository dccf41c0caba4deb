"""Unit tests for option-to-flag conversion and CommandBuilder."""

from minimagick.services.command_builder import CommandBuilder, merge_options, options_to_args


class TestOptionsToArgs:
    """Test one-shot option conversion."""

    def test_each_pair_becomes_one_token(self):
        args = options_to_args({"gravity": "center", "geometry": "+10+10"})

        assert args == ["-gravity center", "-geometry +10+10"]

    def test_insertion_order_is_kept(self):
        options = {}
        options["quality"] = 80
        options["density"] = 72
        options["alpha"] = "off"

        assert options_to_args(options) == ["-quality 80", "-density 72", "-alpha off"]

    def test_empty_and_none(self):
        assert options_to_args({}) == []
        assert options_to_args(None) == []

    def test_merge_options_puts_keywords_last(self):
        merged = merge_options({"gravity": "center"}, dissolve=50)

        assert list(merged.items()) == [("gravity", "center"), ("dissolve", 50)]

    def test_merge_options_keyword_overrides_mapping(self):
        assert merge_options({"gravity": "center"}, gravity="north") == {"gravity": "north"}


class TestCommandBuilder:
    """Test the flag accumulator."""

    def test_append_with_values(self):
        builder = CommandBuilder()
        builder.append("resize", "50%")
        builder.append("rotate", 90)

        assert builder.args == ["-resize", "50%", "-rotate", "90"]

    def test_append_without_values(self):
        builder = CommandBuilder().append("flip").append("monochrome")

        assert builder.args == ["-flip", "-monochrome"]

    def test_append_plus(self):
        builder = CommandBuilder().append("crop", "10x10+0+0").append_plus("repage")

        assert builder.args == ["-crop", "10x10+0+0", "+repage"]

    def test_extend_options(self):
        builder = CommandBuilder().extend_options({"quality": 90}).append("strip")

        assert builder.args == ["-quality 90", "-strip"]

    def test_args_is_a_copy(self):
        builder = CommandBuilder().append("flip")
        builder.args.append("-flop")

        assert len(builder) == 1

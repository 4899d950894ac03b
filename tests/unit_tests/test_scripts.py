"""Argument handling of the command-line scripts."""

import pytest

import protein_grid_search
import protein_search


class TestResultCountFlags:
    """Results-per-query flags are bounded by the pipeline's maximum."""

    def test_defaults_accepted(self):
        args = protein_search.parse_args([])
        assert args.top_n == 5 and args.recall_n == 10

    @pytest.mark.parametrize("argv", [["--recall-n", "101"], ["--recall-n", "0"], ["--top-n", "500"]])
    def test_search_rejects_out_of_range(self, argv, capsys):
        with pytest.raises(SystemExit) as exc:
            protein_search.parse_args(argv)
        assert exc.value.code == 2
        assert "must be in [1, 100]" in capsys.readouterr().err

    def test_grid_search_rejects_out_of_range(self, capsys):
        with pytest.raises(SystemExit):
            protein_grid_search.parse_args(["-q", "q.fasta", "-o", "out.csv", "--method", "lsh", "--recall-n", "200"])
        assert "--recall-n" in capsys.readouterr().err

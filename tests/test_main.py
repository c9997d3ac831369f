import pytest

from token_sync.main import parse_args


def test_desc_requires_sort(capsys):
    with pytest.raises(SystemExit):
        parse_args(["--desc"])
    assert "--desc requires --sort" in capsys.readouterr().err


def test_desc_with_sort_is_accepted():
    args = parse_args(["--sort", "price", "--desc"])
    assert args.sort == "price"
    assert args.desc is True


def test_defaults():
    args = parse_args([])
    assert args.sort is None
    assert args.desc is False
    assert args.top == 20

from stickerpipe.main import read_sticker_files


def test_missing_file_is_reported_without_stopping_others(tmp_path) -> None:
    present = tmp_path / "cat.webp"
    present.write_bytes(b"RIFF")
    missing = tmp_path / "gone.tgs"

    loaded, errors = read_sticker_files([missing, present])

    assert [(path, media.file_name, media.data) for path, media in loaded] == [
        (present, "cat.webp", b"RIFF")
    ]
    assert list(errors) == [missing]
    assert errors[missing]


def test_directory_argument_is_reported(tmp_path) -> None:
    loaded, errors = read_sticker_files([tmp_path])
    assert loaded == []
    assert tmp_path in errors

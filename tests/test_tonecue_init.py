import tonecue


def test_public_reexports_are_accessible() -> None:
    for name in tonecue.__all__:
        assert hasattr(tonecue, name), name


def test_engine_is_importable_from_package() -> None:
    engine = tonecue.SoundEngine(backend=tonecue.offline_backend(8000))
    engine.play("button_click")
    assert len(engine.last_voices) == 1
    assert tonecue.__version__


def test_logging_hook_is_not_left_in_namespace() -> None:
    assert not hasattr(tonecue, "_configure_logging")

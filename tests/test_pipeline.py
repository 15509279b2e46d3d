"""
Tests for the condition spectrogram pipeline and its command-line interface.

Checks:
1. Per-condition maps and rasters from a baselined repository
2. Shared value range (explicit zlim and symmetric fallback)
3. Figure output
4. CLI exit codes
"""

from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from ieeg_power.baseline import apply_baseline
from ieeg_power.config import (
    AnalysisContext,
    BaselineConfig,
    ConditionPanel,
    PipelineConfig,
    PlotConfig,
)
from ieeg_power.exceptions import EmptySelection, UnknownCondition
from ieeg_power.export import export_repository
from ieeg_power.pipeline import (
    PipelineError,
    compute_condition_rasters,
    condition_map,
    default_panels,
    main,
    parse_args,
    run_condition_pipeline,
)
from ieeg_power.reduce import ValueRange
from ieeg_power.repository import load

DECIBEL_OF_TWO = 10 * np.log10(2.0)


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        context=AnalysisContext(subject_code="sub01", output_root=tmp_path / "derivatives"),
        baseline=BaselineConfig(windows_sec=((0.2, 0.4),)),
        plot=PlotConfig(zlim=(-13.0, 13.0)),
        panels=(
            ConditionPanel("Audio-visual", ("drive_av", "last_av")),
            ConditionPanel("Audio only", ("drive_a", "last_a"), electrodes=(15,)),
        ),
    )


def test_run_condition_pipeline(step_source, config, tmp_path):
    """Test the full load -> baseline -> subset -> collapse -> clip -> plot path."""
    result = run_condition_pipeline(step_source, config, output_dir=tmp_path / "figures")

    assert list(result.maps) == ["Audio-visual", "Audio only"]
    audio_visual = result.maps["Audio-visual"]
    assert audio_visual.dims == ("Time", "Frequency")
    assert audio_visual.shape == (5, 3)
    np.testing.assert_allclose(audio_visual.data[:3, :], DECIBEL_OF_TWO)
    np.testing.assert_allclose(audio_visual.data[3:, :], 0.0, atol=1e-12)

    assert result.value_range == ValueRange(-13.0, 13.0)
    assert result.rasters["Audio only"].values.shape == (5, 3)
    assert result.figure_path == tmp_path / "figures" / "sub-sub01_desc-conditions_spectrogram.png"
    assert result.figure_path.exists()
    assert result.repository.baselined is not None


def test_run_condition_pipeline_default_output_dir(step_source, config, tmp_path):
    result = run_condition_pipeline(step_source, config)

    assert result.figure_path.parent == tmp_path / "derivatives" / "demo"
    assert result.figure_path.exists()


def test_run_condition_pipeline_without_figure(step_source, config):
    result = run_condition_pipeline(step_source, config, save_figure=False)

    assert result.figure_path is None
    assert len(result.rasters) == 2


def test_run_condition_pipeline_default_panels(step_source, tmp_path):
    config = PipelineConfig(baseline=BaselineConfig(windows_sec=((0.2, 0.4),)))

    result = run_condition_pipeline(step_source, config, save_figure=False)

    assert list(result.maps) == [
        "Condition: drive_a",
        "Condition: drive_av",
        "Condition: last_a",
        "Condition: last_av",
    ]


def test_symmetric_value_range_when_zlim_is_none(step_source, config):
    config.plot = PlotConfig(zlim=None)

    result = run_condition_pipeline(step_source, config, save_figure=False)

    assert result.value_range.high == pytest.approx(DECIBEL_OF_TWO)
    assert result.value_range.low == pytest.approx(-DECIBEL_OF_TWO)


def test_condition_map_requires_baseline(step_source):
    repository = load(step_source)

    with pytest.raises(PipelineError, match="baseline"):
        condition_map(repository, ConditionPanel("A", ("drive_av",)))


def test_condition_map_unknown_condition(step_source):
    repository = load(step_source)
    apply_baseline(repository, (0.2, 0.4))

    with pytest.raises(EmptySelection):
        condition_map(repository, ConditionPanel("A", ("meow",)))


def test_condition_map_strict_unknown_condition(step_source):
    repository = load(step_source, context=AnalysisContext(strict_conditions=True))
    apply_baseline(repository, (0.2, 0.4))

    with pytest.raises(UnknownCondition):
        condition_map(repository, ConditionPanel("A", ("drive_av", "meow")))


def test_compute_condition_rasters_clips(array_source):
    repository = load(array_source)
    apply_baseline(repository, (-0.4, -0.2))

    maps, rasters, value_range = compute_condition_rasters(
        repository, default_panels(repository), zlim=(-0.5, 0.5)
    )

    assert value_range == ValueRange(-0.5, 0.5)
    for title, raster in rasters.items():
        assert raster.values.min() >= -0.5
        assert raster.values.max() <= 0.5
        assert raster.values.shape == maps[title].shape


@pytest.fixture
def exported_file(step_source, tmp_path):
    repository = load(step_source, context=AnalysisContext(subject_code="sub01"))
    return export_repository(repository, tmp_path / "exports" / "sub-01_power.h5")


def test_parse_args_defaults():
    args = parse_args(["--input", "power.h5"])

    assert args.input == Path("power.h5")
    assert args.config is None
    assert args.output is None
    assert args.verbose is False


def test_parse_args_requires_input():
    with pytest.raises(SystemExit):
        parse_args([])


def test_main_success(exported_file, config, tmp_path):
    config_path = tmp_path / "configs" / "figure.yml"
    config.to_yaml(config_path)
    output_dir = tmp_path / "figures"

    with pytest.raises(SystemExit) as exc_info:
        main(
            [
                "--input", str(exported_file),
                "--config", str(config_path),
                "--output", str(output_dir),
                "--verbose",
            ]
        )

    assert exc_info.value.code == 0
    assert (output_dir / "sub-sub01_desc-conditions_spectrogram.png").exists()


def test_main_with_sys_argv(exported_file, config, tmp_path):
    config_path = tmp_path / "figure.yml"
    config.to_yaml(config_path)
    argv = ["ieeg-power", "--input", str(exported_file), "--config", str(config_path)]

    with patch("sys.argv", argv):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 0


def test_main_default_config_reports_invalid_window(exported_file, tmp_path):
    """The default baseline window (-1, -0.5) s misses the test time axis."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--input", str(exported_file), "--output", str(tmp_path)])

    assert exc_info.value.code == 1


def test_main_missing_input(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        main(["--input", str(tmp_path / "missing.h5")])

    assert exc_info.value.code == 1


def test_main_missing_config(exported_file, tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        main(["--input", str(exported_file), "--config", str(tmp_path / "missing.yml")])

    assert exc_info.value.code == 1


def test_version():
    with pytest.raises(SystemExit) as exc_info:
        parse_args(["--version"])

    assert exc_info.value.code == 0

"""Tests for harness configuration loading, validation and backup addressing."""

from pathlib import Path

import pytest

from cluster_stress.config import AdvertisedAddress, StressConfig, configure_backup, load_settings_file
from cluster_stress.constants import Defaults, EnvVars, MemberKind, Settings
from cluster_stress.errors import ConfigError, SetupError


class TestDefaults:

    def test_defaults_match_documented_values(self):
        config = StressConfig.from_env(environ={})

        assert config.number_of_cores == 3
        assert config.number_of_edges == 1
        assert config.duration_seconds == 30 * 60
        assert config.base_core_backup_port == 8000
        assert config.base_edge_backup_port == 9000
        assert config.core_settings == Defaults.CORE_SETTINGS

    def test_working_layout(self, tmp_path):
        config = StressConfig(working_directory=str(tmp_path))

        assert config.working_directory == tmp_path
        assert config.cluster_directory == tmp_path / "cluster"
        assert config.backup_directory == tmp_path / "backups"


class TestFromEnv:

    def test_environment_overrides_defaults(self, tmp_path):
        env = {
            EnvVars.NUMBER_OF_CORES: "5",
            EnvVars.NUMBER_OF_EDGES: "0",
            EnvVars.DURATION: "1.5",
            EnvVars.WORKING_DIRECTORY: str(tmp_path),
            EnvVars.BASE_CORE_BACKUP_PORT: "7000",
            EnvVars.BASE_EDGE_BACKUP_PORT: "7100",
        }
        config = StressConfig.from_env(environ=env)

        assert config.number_of_cores == 5
        assert config.number_of_edges == 0
        assert config.duration_seconds == 90
        assert config.working_directory == tmp_path
        assert config.backup_address(MemberKind.CORE, 4).port == 7004

    def test_keyword_overrides_beat_environment(self):
        env = {EnvVars.NUMBER_OF_CORES: "5"}
        config = StressConfig.from_env(environ=env, number_of_cores=1, number_of_edges=None)

        assert config.number_of_cores == 1
        assert config.number_of_edges == Defaults.NUMBER_OF_EDGES

    def test_unparseable_value_is_config_error(self):
        with pytest.raises(ConfigError):
            StressConfig.from_env(environ={EnvVars.NUMBER_OF_CORES: "three"})

    def test_settings_file_overrides_core_settings(self, tmp_path):
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text("raft_log_pruning_strategy: 2 files\nraft_log_rotation_size: 4K\n")

        config = StressConfig.from_env(environ={EnvVars.SETTINGS_FILE: str(settings_file)})

        assert config.core_settings[Settings.RAFT_LOG_PRUNING_STRATEGY] == "2 files"
        assert config.core_settings[Settings.RAFT_LOG_ROTATION_SIZE] == "4K"
        assert config.core_settings[Settings.RAFT_LOG_PRUNING_FREQUENCY] == "1s"


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        {"number_of_cores": 0},
        {"number_of_edges": -1},
        {"duration_seconds": 0},
        {"rejoin_timeout_seconds": -1},
        {"base_core_backup_port": 65535, "number_of_cores": 3},
        {"base_core_backup_port": 9000, "base_edge_backup_port": 9002},
    ])
    def test_invalid_configuration_rejected(self, overrides):
        with pytest.raises(ConfigError):
            StressConfig(**overrides)

    def test_config_error_is_a_setup_error(self):
        with pytest.raises(SetupError):
            StressConfig(number_of_cores=0)

    def test_zero_edges_allowed(self):
        assert StressConfig(number_of_edges=0).number_of_edges == 0

    def test_config_is_immutable(self):
        config = StressConfig()
        with pytest.raises(Exception):
            config.number_of_cores = 7

    def test_core_settings_are_read_only(self):
        settings = dict(Defaults.CORE_SETTINGS)
        config = StressConfig(core_settings=settings)

        with pytest.raises(TypeError):
            config.core_settings[Settings.RAFT_LOG_PRUNING_STRATEGY] = "keep_all"

        settings[Settings.RAFT_LOG_PRUNING_STRATEGY] = "keep_all"
        assert config.core_settings[Settings.RAFT_LOG_PRUNING_STRATEGY] == "keep_none"

    @pytest.mark.parametrize("name,value", [
        (Settings.RAFT_LOG_ROTATION_SIZE, "lots"),
        (Settings.RAFT_LOG_PRUNING_FREQUENCY, "often"),
        (Settings.RAFT_LOG_PRUNING_STRATEGY, "keep_some"),
    ])
    def test_unparseable_core_setting_rejected(self, name, value):
        settings = {**Defaults.CORE_SETTINGS, name: value}

        with pytest.raises(ConfigError, match=name):
            StressConfig(core_settings=settings)

    def test_bad_settings_file_value_is_config_error(self, tmp_path):
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text("raft_log_rotation_size: lots\n")

        with pytest.raises(ConfigError):
            StressConfig.from_env(environ={EnvVars.SETTINGS_FILE: str(settings_file)})


class TestBackupAddresses:

    def test_address_is_base_port_plus_index(self):
        config = StressConfig()

        assert str(config.backup_address(MemberKind.CORE, 0)) == "localhost:8000"
        assert str(config.backup_address(MemberKind.CORE, 2)) == "localhost:8002"
        assert str(config.backup_address(MemberKind.EDGE, 0)) == "localhost:9000"

    def test_every_member_gets_a_unique_address(self):
        config = StressConfig(number_of_cores=7, number_of_edges=5)
        addresses = [config.backup_address(MemberKind.CORE, i) for i in range(7)]
        addresses += [config.backup_address(MemberKind.EDGE, i) for i in range(5)]

        assert len(set(addresses)) == 12

    def test_configure_backup_settings_per_instance(self):
        settings = configure_backup(lambda i: AdvertisedAddress("localhost", 8000 + i))

        assert settings[Settings.ONLINE_BACKUP_ENABLED](3) == "true"
        assert settings[Settings.ONLINE_BACKUP_SERVER](3) == "localhost:8003"

    def test_edge_instance_settings_use_edge_ports(self):
        settings = StressConfig().edge_instance_settings()

        assert settings[Settings.ONLINE_BACKUP_SERVER](1) == "localhost:9001"

    @pytest.mark.parametrize("value", ["localhost", ":80", "host:port"])
    def test_parse_rejects_malformed_address(self, value):
        with pytest.raises(ValueError):
            AdvertisedAddress.parse(value)

    def test_parse_round_trip(self):
        assert AdvertisedAddress.parse("127.0.0.1:8001") == AdvertisedAddress("127.0.0.1", 8001)


class TestSettingsFile:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings_file(tmp_path / "nope.yaml")

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            load_settings_file(path)

    def test_booleans_become_setting_strings(self, tmp_path):
        path = tmp_path / "flags.yaml"
        path.write_text("online_backup_enabled: false\n")

        assert load_settings_file(path) == {"online_backup_enabled": "false"}

import json

import pytest

from logservice.config import (
    INPUT_TYPE_FILE,
    INPUT_TYPE_PLUGIN,
    LOG_FILE_TYPE_DELIMITER_LOG,
    LOG_FILE_TYPE_JSON_LOG,
    LOG_FILE_TYPE_REGEX_LOG,
    OUTPUT_TYPE_LOG_SERVICE,
    ApsaraLogConfigInputDetail,
    CommonConfigInputDetail,
    DelimiterConfigInputDetail,
    InvalidTypeError,
    JSONConfigInputDetail,
    LogConfig,
    NoConfigFieldError,
    OutputDetail,
    PluginLogConfigInputDetail,
    RegexConfigInputDetail,
    SensitiveKey,
    StreamLogConfigInputDetail,
    add_necessary_input_config_field,
    convert_to_apsara_log_config_input_detail,
    convert_to_delimiter_config_input_detail,
    convert_to_input_detail,
    convert_to_json_config_input_detail,
    convert_to_plugin_log_config_input_detail,
    convert_to_regex_config_input_detail,
    convert_to_stream_log_config_input_detail,
    get_file_config_input_detail_type,
    is_valid_input_type,
    update_input_config_field,
)
from logservice.plugin import (
    PLUGIN_INPUT_TYPE_DOCKER_STDOUT,
    LogConfigPluginInput,
    create_config_plugin_docker_stdout,
    create_plugin_input_item,
)

PROJECT = "test-go-log-config"
LOGSTORE = "logstore-1"


def _through_service(config: LogConfig) -> LogConfig:
    return LogConfig.from_dict(json.loads(json.dumps(config.to_dict())))


def _config(name, detail, input_type=INPUT_TYPE_FILE, compress=""):
    return LogConfig(
        name=name,
        input_detail=detail,
        input_type=input_type,
        output_type=OUTPUT_TYPE_LOG_SERVICE,
        output_detail=OutputDetail(project_name=PROJECT, log_store_name=LOGSTORE, compress_type=compress),
    )


@pytest.mark.parametrize(
    "value, expected",
    [("syslog", True), ("streamlog", True), ("plugin", True), ("file", True), ("http", False), ("", False)],
)
def test_is_valid_input_type(value, expected):
    assert is_valid_input_type(value) is expected


def test_common_defaults():
    detail = CommonConfigInputDetail.create()
    assert detail.local_storage is True
    assert detail.enable_tag is True
    assert detail.max_send_rate == -1
    assert detail.merge_type == "topic"


def test_common_to_dict_omits_empty_fields():
    data = CommonConfigInputDetail.create().to_dict()
    assert data["mergeType"] == "topic"
    assert data["adjustTimezone"] is False
    assert "filterKey" not in data
    assert "priority" not in data


def test_regex_defaults():
    detail = RegexConfigInputDetail.create()
    assert detail.log_type == LOG_FILE_TYPE_REGEX_LOG
    assert detail.log_begin_regex == ".*"
    assert detail.regex == "(.*)"
    assert detail.file_encoding == "utf8"
    assert detail.max_depth == 100
    assert detail.topic_format == "none"
    assert detail.preserve is True
    assert detail.discard_unmatch is True


def test_delimiter_and_apsara_defaults():
    delimiter = DelimiterConfigInputDetail.create()
    assert delimiter.quote == "\u0001"
    assert delimiter.auto_extend is True
    assert delimiter.log_type == LOG_FILE_TYPE_DELIMITER_LOG
    apsara = ApsaraLogConfigInputDetail.create()
    assert apsara.log_begin_regex == ".*"
    assert apsara.log_type == "apsara_log"


def test_normal_file_config():
    regex_config = RegexConfigInputDetail.create()
    config = _config("go-sdk-simple-file-config", regex_config, compress="lz4")
    regex_config.key = ["content"]
    regex_config.regex = "(.*)"
    regex_config.log_begin_regex = ".*"
    regex_config.log_path = "/usr/local/ilogtail"
    regex_config.file_pattern = "ilogtail.LOG"
    regex_config.discard_unmatch = False
    regex_config.is_docker_file = True
    regex_config.docker_include_env = {"ALIYUN_LOGTAIL_USER_DEFINED_ID": ""}
    assert regex_config.log_type == LOG_FILE_TYPE_REGEX_LOG

    dest = _through_service(config)
    assert dest.name == "go-sdk-simple-file-config"
    assert dest.input_type == INPUT_TYPE_FILE
    assert dest.output_detail.project_name == PROJECT
    assert dest.output_detail.log_store_name == LOGSTORE
    assert dest.output_detail.compress_type == "lz4"
    assert dest.output_type == OUTPUT_TYPE_LOG_SERVICE
    regex_dest = convert_to_regex_config_input_detail(dest.input_detail)
    assert regex_dest is not None
    assert regex_dest.key == regex_config.key
    assert regex_dest.time_format == regex_config.time_format
    assert regex_dest.regex == regex_config.regex
    assert regex_dest.log_begin_regex == regex_config.log_begin_regex
    assert regex_dest.log_path == regex_config.log_path
    assert regex_dest.log_type == regex_config.log_type
    assert regex_dest.file_pattern == regex_config.file_pattern
    assert regex_dest.docker_include_env == {"ALIYUN_LOGTAIL_USER_DEFINED_ID": ""}
    assert regex_dest.is_docker_file is True


def test_regex_file_config():
    regex_config = RegexConfigInputDetail.create()
    config = _config("go-sdk-regex-file-config", regex_config)
    regex_config.discard_unmatch = False
    regex_config.key = [
        "logger", "time", "cluster", "hostname", "sr", "app",
        "workdir", "exe", "corepath", "signature", "backtrace",
    ]
    regex_config.regex = (
        "\\S*\\s+(\\S*)\\s+(\\S*\\s+\\S*)\\s+\\S*\\s+(\\S*)\\s+(\\S*)\\s+(\\S*)\\s+(\\S*)"
        "\\s+(\\S*)\\s+(\\S*)\\s+(\\S*)\\s+\\S*\\s+(\\S*)\\s*([^$]+)"
    )
    regex_config.time_format = "%Y/%m/%d %H:%M:%S"
    regex_config.log_begin_regex = "INFO core_dump_info_data .*"
    regex_config.log_path = "/cloud/log/tianji/TianjiClient#/core_dump_manager"
    regex_config.file_pattern = "core_dump_info_data.log*"
    regex_config.max_depth = 0

    dest = _through_service(config)
    assert dest.name == "go-sdk-regex-file-config"
    assert dest.output_detail.project_name == PROJECT
    regex_dest = convert_to_regex_config_input_detail(dest.input_detail)
    assert regex_dest is not None
    assert regex_dest.key == regex_config.key
    assert regex_dest.time_format == "%Y/%m/%d %H:%M:%S"
    assert regex_dest.regex == regex_config.regex
    assert regex_dest.log_begin_regex == "INFO core_dump_info_data .*"
    assert regex_dest.log_path == regex_config.log_path
    assert regex_dest.file_pattern == "core_dump_info_data.log*"
    assert regex_dest.max_depth == 0
    assert regex_dest.discard_unmatch is False


def test_json_file_config():
    json_config = JSONConfigInputDetail.create()
    config = _config("go-sdk-json-config", json_config)
    json_config.time_key = "key_time"
    json_config.time_format = "%Y/%m/%d %H:%M:%S"
    json_config.log_path = "/cloud/log/"
    json_config.file_pattern = "access.log*"
    assert json_config.log_type == LOG_FILE_TYPE_JSON_LOG

    dest = _through_service(config)
    json_dest = convert_to_json_config_input_detail(dest.input_detail)
    assert json_dest is not None
    assert json_dest.time_key == "key_time"
    assert json_dest.time_format == json_config.time_format
    assert json_dest.log_path == "/cloud/log/"
    assert json_dest.log_type == LOG_FILE_TYPE_JSON_LOG
    assert json_dest.file_pattern == "access.log*"

    json_config.max_depth = 88
    dest = _through_service(config)
    json_dest = convert_to_json_config_input_detail(dest.input_detail)
    assert json_dest.max_depth == 88


def test_delimiter_file_config():
    delimiter_config = DelimiterConfigInputDetail.create()
    config = _config("go-sdk-delimiter-config", delimiter_config)
    delimiter_config.quote = "\u0001"
    delimiter_config.key = ["1", "2", "3", "4", "5"]
    delimiter_config.separator = '"'
    delimiter_config.time_key = "1"
    delimiter_config.time_format = "xxxx"
    delimiter_config.log_path = "/var/log/log"
    delimiter_config.file_pattern = "xxxx.log"

    dest = _through_service(config)
    delimiter_dest = convert_to_delimiter_config_input_detail(dest.input_detail)
    assert delimiter_dest is not None
    assert delimiter_dest.quote == "\u0001"
    assert delimiter_dest.separator == '"'
    assert delimiter_dest.key == ["1", "2", "3", "4", "5"]
    assert delimiter_dest.time_key == "1"
    assert delimiter_dest.time_format == "xxxx"
    assert delimiter_dest.log_path == "/var/log/log"
    assert delimiter_dest.log_type == LOG_FILE_TYPE_DELIMITER_LOG
    assert delimiter_dest.file_pattern == "xxxx.log"


def test_plugin_config():
    plugin_config = PluginLogConfigInputDetail.create()
    config = _config("go-sdk-plugin-config", plugin_config, input_type=INPUT_TYPE_PLUGIN)
    docker = create_config_plugin_docker_stdout()
    docker.include_env = {"x": "y", "dddd": ""}
    docker.exclude_env = {"no_this_env": ""}
    pipeline = LogConfigPluginInput()
    pipeline.inputs.append(create_plugin_input_item(PLUGIN_INPUT_TYPE_DOCKER_STDOUT, docker))
    plugin_config.plugin_detail = pipeline

    dest = _through_service(config)
    assert dest.name == "go-sdk-plugin-config"
    assert dest.input_type == INPUT_TYPE_PLUGIN
    plugin_dest = convert_to_plugin_log_config_input_detail(dest.input_detail)
    assert plugin_dest is not None
    assert plugin_dest.plugin_detail.to_dict() == plugin_config.plugin_detail.to_dict()


def test_convert_rejects_other_log_type():
    data = RegexConfigInputDetail.create().to_dict()
    assert convert_to_json_config_input_detail(data) is None
    assert convert_to_delimiter_config_input_detail(data) is None
    assert convert_to_apsara_log_config_input_detail(data) is None
    assert convert_to_plugin_log_config_input_detail(data) is None


def test_convert_rejects_non_mapping():
    assert convert_to_regex_config_input_detail(RegexConfigInputDetail.create()) is None
    assert convert_to_stream_log_config_input_detail("tag") is None


def test_convert_rejects_mismatched_field_type():
    assert convert_to_regex_config_input_detail({"logType": "common_reg_log", "maxDepth": "deep"}) is None
    assert convert_to_regex_config_input_detail({"logType": "common_reg_log", "key": "content"}) is None


def test_convert_ignores_nulls_and_unknown_keys():
    detail = convert_to_regex_config_input_detail(
        {"logType": "common_reg_log", "key": None, "extra": 1, "maxDepth": 7}
    )
    assert detail.key is None
    assert detail.max_depth == 7


def test_convert_to_legacy_input_detail():
    detail = convert_to_input_detail(
        {"logType": "common_reg_log", "logPath": "/var/log", "key": ["a"], "filterKey": ["b"]}
    )
    assert detail.log_path == "/var/log"
    assert detail.keys == ["a"]
    assert detail.filter_keys == ["b"]


def test_stream_requires_tag():
    assert convert_to_stream_log_config_input_detail({"localStorage": True}) is None
    detail = convert_to_stream_log_config_input_detail({"tag": "sys", "localStorage": True})
    assert detail.tag == "sys"
    assert detail.local_storage is True
    assert StreamLogConfigInputDetail.create().to_dict()["tag"] == ""


def test_sensitive_keys_round_trip():
    detail = RegexConfigInputDetail.create()
    detail.sensitive_keys = [SensitiveKey(key="pwd", type="const", const_string="***", all=True)]
    data = detail.to_dict()
    assert data["sensitive_keys"][0]["const"] == "***"
    back = convert_to_regex_config_input_detail(data)
    assert back.sensitive_keys == detail.sensitive_keys


def test_log_config_time_fields():
    config = LogConfig.from_dict({"configName": "c", "createTime": 1524539357})
    assert config.create_time == 1524539357
    assert "lastModifyTime" not in config.to_dict()
    with pytest.raises(ValueError):
        LogConfig.from_dict({"createTime": -1})


def test_get_file_config_input_detail_type():
    assert get_file_config_input_detail_type({"logType": "json_log"}) == "json_log"
    assert get_file_config_input_detail_type({"tag": "x"}) is None
    assert get_file_config_input_detail_type(["logType"]) is None
    with pytest.raises(TypeError):
        get_file_config_input_detail_type({"logType": 3})


def test_add_necessary_fields_without_log_type():
    detail = {"maxSendRate": 10}
    add_necessary_input_config_field(detail)
    assert detail == {"maxSendRate": 10, "localStorage": True, "enableTag": True, "mergeType": "topic"}


def test_add_necessary_fields_regex():
    detail = {"logType": "common_reg_log", "regex": "(a)"}
    add_necessary_input_config_field(detail)
    assert detail["regex"] == "(a)"
    assert detail["logBeginRegex"] == ".*"
    assert detail["key"] == ["content"]
    assert detail["maxDepth"] == 100
    assert detail["timeFormat"] == ""
    assert detail["fileEncoding"] == "utf8"


@pytest.mark.parametrize(
    "log_type, expected",
    [
        ("apsara_log", {"logBeginRegex": ".*"}),
        ("json_log", {"timeKey": ""}),
        ("delimiter_log", {"quote": "\u0001", "autoExtend": True, "timeKey": ""}),
    ],
)
def test_add_necessary_fields_per_type(log_type, expected):
    detail = {"logType": log_type}
    add_necessary_input_config_field(detail)
    for key, value in expected.items():
        assert detail[key] == value
    assert detail["preserve"] is True


def test_update_input_config_field():
    detail = {"logPath": "/a"}
    update_input_config_field(detail, "logPath", "/b")
    assert detail["logPath"] == "/b"
    with pytest.raises(NoConfigFieldError):
        update_input_config_field(detail, "missing", 1)
    with pytest.raises(InvalidTypeError):
        update_input_config_field(["logPath"], "logPath", 1)
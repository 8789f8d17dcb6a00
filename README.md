# logservice

A client for managing a hosted log service project: logstores, machine
groups, logtail collection configs and the project's own service
logging. It uses only the standard library.

Modules:

- `logservice.project` – `LogProject`, with the calls for logstores,
  machine groups and configs, plus `new_log_project` and
  `new_log_project_v2`.
- `logservice.base` – endpoint parsing, request signing, the retrying
  request path (`ProjectBase`), `LogError` and `ClientError`.
- `logservice.config` – typed input details for collection configs,
  their defaults and conversion from raw dictionaries.
- `logservice.plugin` – plugin pipelines and default settings for the
  docker stdout and canal (binlog) inputs.
- `logservice.logging_config` – `Logging`, `LoggingDetail` and the
  service logging calls that `LogProject` inherits.

## Connecting to a project

```python
from logservice.project import new_log_project

project = new_log_project(
    "my-project",
    "cn-hangzhou.log.aliyuncs.com",
    "placeholder",
    "secret",
)
project.with_request_timeout(30).with_retry_timeout(90)

print(project.list_log_store())
```

`new_log_project_v2(name, endpoint, provider)` takes a credentials
provider instead: any object whose `get_credentials()` returns
`(access_key_id, access_key_secret, security_token)`. A security token
can also be set with `with_token`.

### How the endpoint is handled

- The endpoint may be given with or without an `http://` or `https://`
  prefix. Without a prefix, plain HTTP is used.
- Setting `project.using_http` or `logservice.base.GLOBAL_FORCE_USING_HTTP`
  forces plain HTTP. This takes effect when the base URL is next computed.
- The base URL is `<scheme><project>.<host>`, or `<scheme><host>` when the
  project name is empty. `parse_endpoint` returns this URL together with
  a proxy URL.
- When the host is an IP address, requests are sent through that address
  as a proxy.

### Requests and retries

Every request is signed with HMAC-SHA1 and sent through a transport. The
default transport is `UrllibTransport`. Any callable taking
`(method, url, headers, body, timeout, proxy)` and returning a `Response`
can be passed as `transport=` to `LogProject`.

`raw_request` returns the `Response` on status 200. Otherwise:

- Statuses 500, 502 and 503, and network errors, are retried with
  growing delays until the retry timeout runs out. The error then raised
  says `stopped retrying err`.
- Any other status raises `LogError` at once.

## Logstores and machine groups

Logstores and machine groups are passed in and returned as dictionaries
in the service's JSON form. Objects offering `to_dict()` are also
accepted.

```python
project.create_log_store("access-log", 7, 2, True, 16)

if project.check_logstore_exist("access-log"):
    store = project.get_log_store("access-log")   # dict, "logstoreName" filled in

groups, total = project.list_machine_group(0, 100)
names, total = project.list_config(0, 100)
```

A `size` of zero or less falls back to a page size of 500 for machine
groups and 100 for configs.

The `check_*_exist` methods return `False` only when the service reports
that the object does not exist (`LogStoreNotExist`,
`MachineGroupNotExist` or `ConfigNotExist`). Any other error is raised.

## Collection configs

```python
from logservice.config import (
    LogConfig,
    OutputDetail,
    RegexConfigInputDetail,
    convert_to_regex_config_input_detail,
)

detail = RegexConfigInputDetail.create()   # logType, regex and defaults filled in
detail.log_path = "/var/log/app"
detail.file_pattern = "*.log"

config = LogConfig(
    name="app-config",
    input_type="file",
    output_type="LogService",
    input_detail=detail,
    output_detail=OutputDetail(project_name="my-project", log_store_name="access-log"),
)
project.create_config(config)
project.apply_config_to_machine_group("app-config", "my-group")

stored = project.get_config("app-config")
regex_detail = convert_to_regex_config_input_detail(stored.input_detail)
```

Typed details are:

- `ApsaraLogConfigInputDetail`
- `RegexConfigInputDetail`
- `JSONConfigInputDetail`
- `DelimiterConfigInputDetail`
- `PluginLogConfigInputDetail`
- `StreamLogConfigInputDetail`
- the legacy `InputDetail`

Each has `create()` for the service defaults, plus `to_dict()` and
`from_dict()`.

`get_config_string`, `create_config_string` and `update_config_string`
work with the raw JSON text instead.

### Raw input details

- **Converting.** A config read back from the service keeps its input
  detail as a dictionary. The `convert_to_*` functions type it, and
  return `None` when it is not of the requested kind (for example, its
  `logType` does not match).
- **Reading the type.** `get_file_config_input_detail_type` returns the
  `logType`, or `None` when there is none.
- **Filling defaults.** `add_necessary_input_config_field` fills in, in
  place, the defaults the service expects for the dictionary's `logType`.
- **Changing a field.** `update_input_config_field` replaces an existing
  key. It raises `NoConfigFieldError` if the key is absent, and
  `InvalidTypeError` if the detail is not a dictionary.
- **Checking the input type.** `is_valid_input_type` accepts `syslog`,
  `streamlog`, `plugin` and `file`.

## Plugin inputs

```python
from logservice.config import PluginLogConfigInputDetail
from logservice.plugin import (
    PLUGIN_INPUT_TYPE_DOCKER_STDOUT,
    LogConfigPluginInput,
    create_config_plugin_docker_stdout,
    create_plugin_input_item,
)

stdout = create_config_plugin_docker_stdout()
stdout.include_env = {"APP": "web"}

detail = PluginLogConfigInputDetail.create()
detail.plugin_detail = LogConfigPluginInput(
    inputs=[create_plugin_input_item(PLUGIN_INPUT_TYPE_DOCKER_STDOUT, stdout)]
)
```

`create_config_plugin_canal()` gives canal (MySQL binlog) settings with
the defaults filled in: `127.0.0.1:3306`, user `root`, flavor `mysql`.

## Service logging

```python
from logservice.logging_config import Logging, LoggingDetail

project.create_logging(
    Logging(
        project="my-project",
        logging_details=[LoggingDetail(type="operation_log", logstore="internal-log")],
    )
)
print(project.get_logging())
```

`update_logging` and `delete_logging` complete the set.

## Errors

- **`LogError`** is raised when the service answers with an error. It
  carries `code`, `message`, `request_id` and `http_code`.
- **`ClientError`** is a `LogError` subclass for network failures, where
  no reply was received.

## What this package does not do

This package manages project resources only. It does not:

- write, pull or query logs;
- manage indexes, shippers, consumer groups or the projects themselves.

Logstores and machine groups have no typed classes; they are plain
dictionaries.
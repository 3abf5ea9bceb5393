# adkflow

A small framework for building LLM agent applications in Python:

- **Agents** (`adkflow.agent`): `Agent` with an instruction, a model name,
  tools, sub-agents and before/after callbacks; a `ModelRegistry` the agent
  looks its model up in; and `export` / `get_exported_agent` for a
  process-wide table of named agents.
- **Composite agents** (`adkflow.composite`): `SequentialAgent` pipes one
  agent's output into the next, `LoopAgent` repeats its sub-agents for a fixed
  number of iterations (10 by default), and `ParallelAgent` runs sub-agents
  concurrently with a worker limit and raises a `MultiError` holding every
  failure and the joined output of the agents that succeeded.
- **Run configuration** (`adkflow.run_config`): `RunConfig` and
  `StreamingMode`, with `validate()` rejecting unusable settings.
- **Name validation** (`adkflow.validation`): agent names must be identifiers
  and must not be the reserved name `user`.
- **Artifacts** (`adkflow.artifacts`): versioned storage of text or binary
  parts, scoped per session or per user (filenames starting with `user:`).
- **Live requests** (`adkflow.live`): a bounded, thread-safe request queue
  that raises `QueueClosedError` once closed.
- **Workflow service and HTTP API** (`adkflow.service`,
  `adkflow.http_server`): register agents as named workflows, execute them
  through a worker pool with timeouts, and serve them over JSON and
  Server-Sent Events.
- **Helpers**: `.env` discovery (`adkflow.env`), instruction state
  placeholders (`adkflow.state`) and log file setup (`adkflow.logs`).

## Agents and models

A model is any object with a `name` and a `generate(messages, context)`
method returning text; `messages` is a list of `ChatMessage(role, content)`.
Register it in a `ModelRegistry` (or the shared `default_model_registry()`):

```python
from adkflow.agent import Agent, ModelRegistry

class Echo:
    name = "echo"
    def generate(self, messages, context):
        return messages[-1].content

registry = ModelRegistry()
registry.register(Echo())

agent = Agent(name="helper", model="echo", instruction="Be brief.", model_registry=registry)
agent.process("hi")   # "hi"
```

If the model is not registered, `process` returns a fixed "model is not
available" placeholder text. A `before_agent_callback(context, message)` that
returns a string short-circuits processing; `after_agent_callback(context,
response)` can rewrite the answer. Response lines that are JSON objects with a
`tool_name` (and optional `parameters`) are run against the agent's tools,
and their results take the place of those lines.

`RunContext` carries request values (`values`), an optional monotonic
`deadline` and a cancellation flag; `raise_if_cancelled()` raises
`CancelledError` or `TimeoutError`.

## Artifacts

```python
from adkflow.artifacts import InMemoryArtifactService, Part

store = InMemoryArtifactService()
v0 = store.save_artifact("app", "alice", "s1", "notes.txt", Part.from_text("draft", "text/plain"))
v1 = store.save_artifact("app", "alice", "s1", "notes.txt", Part.from_text("final", "text/plain"))

store.load_artifact("app", "alice", "s1", "notes.txt").text       # "final"
store.load_artifact("app", "alice", "s1", "notes.txt", v0).text   # "draft"
store.list_versions("app", "alice", "s1", "notes.txt")            # [0, 1]
store.list_artifact_keys("app", "alice", "s1")                    # ["notes.txt"]
```

Loading a missing artifact or an out-of-range version returns `None`.

## Validation and run configuration

```python
from adkflow.validation import AgentValidationError, validate_agent_name
from adkflow.run_config import RunConfig

validate_agent_name("planner")        # returns "planner"
try:
    validate_agent_name("User")       # reserved, case-insensitively
except AgentValidationError as exc:
    print(exc)

RunConfig().validate()
```

## Workflows over HTTP

Register agents in a `WorkflowRegistry`, then use a `WorkflowService`
directly or hand the registry to an `ApiServer(registry, addr=":8080")`.
`ApiServer.start()` blocks serving requests until `stop()` is called.

| Method | Path                     | Purpose                                 |
|--------|--------------------------|-----------------------------------------|
| GET    | `/api/workflows`         | list workflow names and their count     |
| GET    | `/api/workflows/{name}`  | name, description, model and type       |
| POST   | `/api/execute`           | run a workflow, JSON response           |
| POST   | `/api/stream`            | run a workflow, Server-Sent Events      |
| GET    | `/health`                | status, version, time, workflow names   |

An execute request carries `workflow`, `input`, `user_id`, `archive_id` and
optionally `experiment_id`, `trace_id`, `parameters` and `timeout` (seconds,
30 by default). `user_id` and `archive_id` are placed in the agent's
`RunContext.values`, so callbacks can read them. Unknown workflows answer
404, malformed requests 400, and failures or timeouts 500.

Stream events are framed by `format_sse_event(event, data)` and
`format_error_event(message)`:

```python
from adkflow.http_server import format_sse_event

format_sse_event("done", "hello")   # "event: done\ndata: hello\n\n"
```

## Instruction state

```python
from adkflow.state import find_state_params

find_state_params("Write about {topic} for {audience}.")   # ["topic", "audience"]
```

`create_empty_state(agent, initialized_states)` collects such placeholders
from an agent's `instruction` (and `system_instructions`) and its sub-agents,
maps each to `""`, and leaves out the ones already in `initialized_states`.

## Environment and logging

- `find_upwards(folder, filename)` returns the nearest file of that name at or
  above `folder`; `load_dotenv_for_agent(agent_name, parent_folder)` loads the
  nearest `.env` without overriding variables already set.
- `log_to_stderr`, `log_to_tmp_folder(LogConfig())` and
  `create_multi_logger(LogConfig())` configure the root logger; the file
  variants write under the system temp folder and return the log file path.

## What it does not do

- There is no command-line program; everything is used from Python.
- No model clients are included: you supply and register your own model
  objects.
- Artifacts are stored in memory only and are lost when the process exits.

## Running the tests

The test suite uses pytest; install the `test` extra to get it.
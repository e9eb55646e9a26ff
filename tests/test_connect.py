import dataclasses
import unittest

from botocore.exceptions import NoRegionError, ProfileNotFound

from s3pull.connect import (
    DEFAULT_REGION,
    AuthenticationError,
    ConnectionConfig,
    DefaultCredentials,
    Endpoint,
    ProfileCredentials,
    Region,
    StaticCredentials,
    connect,
    connect_from_inputs,
    resolve_region,
)


def _session_factory(region_name=None, client_error=None, session_error=None):
    created = []

    class _Session:
        def __init__(self, **kwargs) -> None:
            if session_error is not None:
                raise session_error
            self.kwargs = kwargs
            self.region_name = region_name
            self.client_calls = []
            created.append(self)

        def client(self, service, **kwargs):
            self.client_calls.append((service, kwargs))
            if client_error is not None:
                raise client_error
            return {"service": service, **kwargs}

    return _Session, created


class TestConnectionConfig(unittest.TestCase):
    def test_static_credentials_win_over_profile(self) -> None:
        config = ConnectionConfig.from_inputs(auth=("ak", "sk"), profile="dev")
        self.assertEqual(config.credentials, StaticCredentials("ak", "sk"))

    def test_profile_wins_over_default_chain(self) -> None:
        config = ConnectionConfig.from_inputs(profile="dev")
        self.assertEqual(config.credentials, ProfileCredentials("dev"))

    def test_default_chain_when_nothing_given(self) -> None:
        config = ConnectionConfig.from_inputs()
        self.assertEqual(config.credentials, DefaultCredentials())
        self.assertEqual(config.location, Region(None))
        self.assertIsNone(config.path_style)

    def test_endpoint_wins_over_region(self) -> None:
        config = ConnectionConfig.from_inputs(
            region="eu-west-1", endpoint="http://localhost:9000"
        )
        self.assertEqual(
            config.location,
            Endpoint(url="http://localhost:9000", signing_region="eu-west-1"),
        )

    def test_invalid_combinations_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ConnectionConfig(DefaultCredentials(), Endpoint("localhost:9000"))
        with self.assertRaises(ValueError):
            ConnectionConfig(DefaultCredentials(), Region(""))
        with self.assertRaises(ValueError):
            ConnectionConfig(StaticCredentials("", "secret"), Region("us-east-1"))
        with self.assertRaises(ValueError):
            ConnectionConfig(ProfileCredentials(" "), Region("us-east-1"))
        with self.assertRaises(ValueError):
            ConnectionConfig(DefaultCredentials(), None)  # type: ignore[arg-type]

    def test_config_is_immutable(self) -> None:
        config = ConnectionConfig.from_inputs(region="us-west-2")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            config.path_style = True  # type: ignore[misc]


class TestResolveRegion(unittest.TestCase):
    class _Session:
        def __init__(self, region_name) -> None:
            self.region_name = region_name

    def test_explicit_region_first(self) -> None:
        self.assertEqual(
            resolve_region("ap-south-1", self._Session("eu-west-1")), "ap-south-1"
        )

    def test_session_region_second(self) -> None:
        self.assertEqual(resolve_region(None, self._Session("eu-west-1")), "eu-west-1")

    def test_default_region_last(self) -> None:
        self.assertEqual(resolve_region(None, self._Session(None)), DEFAULT_REGION)
        self.assertEqual(resolve_region(None), DEFAULT_REGION)


class TestConnect(unittest.TestCase):
    def test_static_credentials_passed_to_session(self) -> None:
        factory, created = _session_factory()
        connect(
            ConnectionConfig.from_inputs(auth=("ak", "sk"), region="us-west-2"),
            session_factory=factory,
        )
        self.assertEqual(
            created[0].kwargs,
            {"aws_access_key_id": "ak", "aws_secret_access_key": "sk"},
        )

    def test_profile_passed_to_session(self) -> None:
        factory, created = _session_factory()
        connect(ConnectionConfig.from_inputs(profile="dev"), session_factory=factory)
        self.assertEqual(created[0].kwargs, {"profile_name": "dev"})

    def test_region_routing_uses_provider_chain(self) -> None:
        factory, created = _session_factory(region_name="eu-central-1")
        client = connect(ConnectionConfig.from_inputs(), session_factory=factory)
        self.assertEqual(client, {"service": "s3", "region_name": "eu-central-1"})
        self.assertEqual(created[0].kwargs, {})

    def test_endpoint_routing_signs_with_region(self) -> None:
        factory, _created = _session_factory(region_name="eu-central-1")
        client = connect(
            ConnectionConfig.from_inputs(
                region="us-west-2", endpoint="http://minio.local:9000"
            ),
            session_factory=factory,
        )
        self.assertEqual(client["endpoint_url"], "http://minio.local:9000")
        self.assertEqual(client["region_name"], "us-west-2")

    def test_endpoint_without_region_falls_back_to_default(self) -> None:
        factory, _created = _session_factory()
        client = connect(
            ConnectionConfig.from_inputs(endpoint="http://minio.local:9000"),
            session_factory=factory,
        )
        self.assertEqual(client["region_name"], DEFAULT_REGION)

    def test_path_style_passed_through(self) -> None:
        factory, _created = _session_factory()
        client = connect(
            ConnectionConfig.from_inputs(region="us-east-1", path_style=True),
            session_factory=factory,
        )
        self.assertEqual(client["config"].s3, {"addressing_style": "path"})

        client = connect(
            ConnectionConfig.from_inputs(region="us-east-1", path_style=False),
            session_factory=factory,
        )
        self.assertEqual(client["config"].s3, {"addressing_style": "virtual"})

    def test_path_style_unset_keeps_sdk_default(self) -> None:
        factory, _created = _session_factory()
        client = connect(
            ConnectionConfig.from_inputs(region="us-east-1"), session_factory=factory
        )
        self.assertNotIn("config", client)

    def test_endpoint_failure_names_endpoint(self) -> None:
        cause = ValueError("Invalid endpoint: http://bad")
        factory, _created = _session_factory(client_error=cause)
        with self.assertRaises(AuthenticationError) as ctx:
            connect(
                ConnectionConfig.from_inputs(
                    region="eu-west-1", endpoint="http://bad.example:1"
                ),
                session_factory=factory,
            )
        error = ctx.exception
        self.assertTrue(
            str(error).startswith("Failed to connect to endpoint [http://bad.example:1]")
        )
        self.assertIn("region [eu-west-1]", str(error))
        self.assertEqual(error.endpoint, "http://bad.example:1")
        self.assertIs(error.cause, cause)
        self.assertIs(error.__cause__, cause)

    def test_region_failure_names_region(self) -> None:
        factory, _created = _session_factory(client_error=NoRegionError())
        with self.assertRaises(AuthenticationError) as ctx:
            connect(ConnectionConfig.from_inputs(), session_factory=factory)
        self.assertEqual(
            str(ctx.exception), f"Failed to connect using region [{DEFAULT_REGION}]"
        )
        self.assertIsNone(ctx.exception.endpoint)

    def test_missing_profile_is_authentication_error(self) -> None:
        factory, _created = _session_factory(
            session_error=ProfileNotFound(profile="missing")
        )
        with self.assertRaises(AuthenticationError) as ctx:
            connect_from_inputs(
                profile="missing", region="us-east-1", session_factory=factory
            )
        self.assertIsInstance(ctx.exception.cause, ProfileNotFound)
        self.assertIn("region [us-east-1]", str(ctx.exception))

    def test_logs_connection(self) -> None:
        factory, _created = _session_factory()
        with self.assertLogs("s3pull.connect", level="DEBUG") as logs:
            connect(
                ConnectionConfig.from_inputs(endpoint="http://minio.local:9000"),
                session_factory=factory,
            )
        self.assertIn("http://minio.local:9000", logs.output[0])

    def test_real_boto3_client_for_custom_endpoint(self) -> None:
        client = connect_from_inputs(
            auth=("ak", "sk"),
            region="eu-central-1",
            endpoint="http://localhost:9000",
            path_style=True,
        )
        self.assertEqual(client.meta.endpoint_url, "http://localhost:9000")
        self.assertEqual(client.meta.region_name, "eu-central-1")
        self.assertEqual(client.meta.config.s3["addressing_style"], "path")


if __name__ == "__main__":
    unittest.main()

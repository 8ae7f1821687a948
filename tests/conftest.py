pytest_plugins = [
    "tests.fixtures.aws_fixtures",
    "tests.fixtures.call_fixtures",
]

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a small but representative PHP project: models, a service, a
controller, a front script with a literal include, PHPUnit-style tests and a
vendor directory that must never be analyzed.
"""

from pathlib import Path
from typing import Dict, List, Set

import pytest

PROJECT_FILES: Dict[str, str] = {
    "composer.json": '{"name": "acme/shop"}\n',
    "README.md": "# Shop\n",
    "src/Models/Model.php": """<?php
namespace App\\Models;

abstract class Model
{
    public function save()
    {
        return true;
    }
}
""",
    # describe() body is line 13; tests rely on it
    "src/Models/User.php": """<?php
namespace App\\Models;

class User extends \\App\\Models\\Model
{
    public function getName()
    {
        return $this->name;
    }

    public static function describe($user)
    {
        return 'user';
    }
}
""",
    "src/Services/UserService.php": """<?php
namespace App\\Services;

use App\\Models\\User;

class UserService
{
    public static function register($name)
    {
        $user = new \\App\\Models\\User();
        $user->save();
        return self::format($user);
    }

    private static function format($user)
    {
        return User::describe($user);
    }
}
""",
    "src/Http/UserController.php": """<?php
namespace App\\Http;

use App\\Services\\UserService;

class UserController
{
    public function store()
    {
        return UserService::register('alice');
    }
}
""",
    "src/Other/Unrelated.php": """<?php
namespace App\\Other;

class Unrelated
{
    public static function noop()
    {
    }
}
""",
    "public/index.php": """<?php
require_once 'bootstrap.php';

$controller = new \\App\\Http\\UserController();
echo $controller->store();
""",
    "public/bootstrap.php": """<?php
define('APP_ENV', 'test');
""",
    "tests/Models/UserTest.php": """<?php
namespace App\\Tests\\Models;

use App\\Models\\User;

class UserTest extends TestCase
{
    public function testDescribe()
    {
        User::describe(null);
    }
}
""",
    "tests/Services/UserServiceTest.php": """<?php
namespace App\\Tests\\Services;

use App\\Services\\UserService;

class UserServiceTest extends TestCase
{
    public function testRegister()
    {
        UserService::register('bob');
    }
}
""",
    "tests/Other/UnrelatedTest.php": """<?php
namespace App\\Tests\\Other;

use App\\Other\\Unrelated;

class UnrelatedTest extends TestCase
{
    public function testNothing()
    {
        Unrelated::noop();
    }
}
""",
    "vendor/acme/lib/Helper.php": """<?php
namespace Acme;

class Helper extends \\App\\Models\\User {}
""",
}

SOURCE_FILES: List[str] = sorted(
    path for path in PROJECT_FILES if path.endswith(".php") and not path.startswith("vendor/")
)

USER_IMPACT = {
    "src/Models/User.php",
    "src/Services/UserService.php",
    "src/Http/UserController.php",
    "public/index.php",
    "tests/Models/UserTest.php",
    "tests/Services/UserServiceTest.php",
}


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create the sample PHP project.

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "shop"
    for path, content in PROJECT_FILES.items():
        target = project_root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return project_root.resolve()


@pytest.fixture
def source_files() -> List[str]:
    """Files the scanner should report for the sample project."""
    return list(SOURCE_FILES)


@pytest.fixture
def user_impact() -> Set[str]:
    """Files affected by a change to src/Models/User.php."""
    return set(USER_IMPACT)

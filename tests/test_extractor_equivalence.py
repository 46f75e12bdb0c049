# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Both extraction backends must agree on every fact for valid PHP."""

import pytest

pytest.importorskip("tree_sitter_language_pack")

from xfile_impact.extractors.token_extractor import TokenSymbolExtractor  # noqa: E402
from xfile_impact.extractors.tree_extractor import TreeSitterSymbolExtractor  # noqa: E402

CORPUS = {
    "model": """<?php
namespace App\\Models;

use App\\Contracts\\Arrayable;
use App\\Traits\\HasTimestamps;

class User extends BaseModel implements Arrayable
{
    use HasTimestamps;

    public function toArray()
    {
        return ['name' => $this->name];
    }
}
""",
    "service": """<?php
namespace App\\Services;

use App\\Models\\User;
use App\\Repositories\\UserRepository as Repo;

class UserService
{
    private $repo;

    public function __construct()
    {
        $this->repo = new \\App\\Repositories\\UserRepository();
    }

    public function register($data)
    {
        $this->validate($data);
        $user = \\App\\Models\\User::create($data);
        $this->repo->save($user);
        $mailer?->send($user);
        return $user;
    }

    private function validate($data)
    {
        return self::rules();
    }
}
""",
    "global_script": """<html>
<?php
require_once 'bootstrap.php';
include('lib/helpers.php');
require __DIR__ . '/config.php';

// new Commented();
$greeting = "Hello $name";
$report = new Report();
Report::render($report);
?>
</html>
""",
    "interfaces_and_traits": """<?php
namespace App\\Contracts;

interface Repository extends Countable, \\IteratorAggregate
{
    public function find($id);
}

trait Loggable
{
    public function log($message)
    {
        \\Psr\\Log\\Logger::write($message);
    }
}
""",
    "braced_namespaces": """<?php
namespace App\\Http {
    class Kernel extends \\App\\Foundation\\HttpKernel {}
}

namespace {
    $kernel = new \\App\\Http\\Kernel();
}
""",
    "strings_and_heredoc": """<?php
$sql = <<<SQL
SELECT * FROM users WHERE class = 'new Foo()'
SQL;
$text = 'use App\\Ghost;';
$shell = `ls`;
""",
    "closures": """<?php
namespace App;

$handler = function ($event) use ($logger) {
    $logger->info($event);
    return new Events\\Handled($event);
};
""",
    "namespace_relative_names": """<?php
namespace N;

class K extends namespace\\Base
{
    public function make()
    {
        $a = new Sub\\K();
        $b = new namespace\\Z();
        return namespace\\Util::run($a, $b);
    }
}
""",
    "global_relative_names": """<?php
$z = new namespace\\Z();
namespace\\Util::run($z);
""",
}


@pytest.mark.parametrize("name", sorted(CORPUS))
def test_backends_agree(name):
    """Test that token and tree backends produce set-equal facts."""
    source = CORPUS[name]
    token_fact = TokenSymbolExtractor().extract(source)
    tree_fact = TreeSitterSymbolExtractor().extract(source)
    assert token_fact.to_dict() == tree_fact.to_dict()


def test_corpus_is_not_trivial():
    """Test that the corpus exercises every reference category."""
    extractor = TokenSymbolExtractor()
    facts = [extractor.extract(source) for source in CORPUS.values()]
    for attribute in (
        "declared_types",
        "uses",
        "extends",
        "implements",
        "traits",
        "instantiations",
        "static_calls",
        "instance_calls",
        "includes",
    ):
        assert any(getattr(fact, attribute) for fact in facts), attribute

from sparql_transformer.config import Options, configure_logging
from sparql_transformer.runner import dry_run, transform

configure_logging(Options.from_env())

# Compile only; set run = True to query DBpedia
print(dry_run("examples/city.region.list.ld.json"))

run = False
if run:
    import json
    output = transform("examples/city.region.list.ld.json", Options.from_env())
    print(json.dumps(output, indent=2))

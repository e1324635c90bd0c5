"""
record_pipeline.py
Batch entry point: registers a closed set of record declarations, then resolves, flattens and
emits every record. One record failing never stops its siblings; the caller gets every artifact
that could be produced together with the full, sorted diagnostic list.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional

from capability_resolver import CapabilityResolver
from diagnostics import Diagnostic, DiagnosticCollector, DiagnosticKind, Severity
from field_flattener import FieldFlattener
from generation_errors import (
    CyclicInheritanceError, FieldCollisionError, GenerationError, NonSerializableFieldTypeError,
    UnsupportedTypeError,
)
from generators.codec_generator import CodecGenerator, RecordPlan, render_module
from generators.json_schema_generator import generate_json_schema
from record_model import RecordDeclaration
from symbol_registry import SymbolRegistry

logger = logging.getLogger(__name__)

ERROR_KINDS = {
    CyclicInheritanceError: DiagnosticKind.CYCLIC_INHERITANCE,
    NonSerializableFieldTypeError: DiagnosticKind.NON_SERIALIZABLE_FIELD_TYPE,
    UnsupportedTypeError: DiagnosticKind.UNSUPPORTED_TYPE,
    FieldCollisionError: DiagnosticKind.FIELD_COLLISION_ERROR,
}

# Errors that fail a single record; any other error aborts the batch.
RECORD_ERRORS = tuple(ERROR_KINDS)


class GeneratorOptions:
    """
    Settings for one generation run.

    Args:
        module_name: name used in the generated module docstring and schema title
        strict_collisions: treat inherited field-name collisions as errors instead of warnings
        include_schema: also build a JSON schema for the generated records
        max_workers: number of threads planning records; 1 plans them in order on the caller's thread
        verbose: log per-record progress at INFO instead of DEBUG
    """

    def __init__(self, module_name: str = "records", strict_collisions: bool = False,
                 include_schema: bool = False, max_workers: int = 1, verbose: bool = False):
        self.module_name = module_name
        self.strict_collisions = strict_collisions
        self.include_schema = include_schema
        self.max_workers = max(1, int(max_workers))
        self.verbose = verbose


class GenerationResult:
    def __init__(self, options: GeneratorOptions, artifacts: Dict[str, str], plans: Dict[str, RecordPlan],
                 failed: Dict[str, GenerationError], diagnostics: List[Diagnostic]):
        self.options = options
        self.artifacts = artifacts
        self.plans = plans
        self.failed = failed
        self.diagnostics = diagnostics
        self.json_schema = None
        if options.include_schema:
            self.json_schema = self.schema()

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def module_source(self) -> str:
        return render_module(self.artifacts.values(),
                             f"Generated record codecs for {self.options.module_name}. Do not edit.")

    def schema(self):
        return generate_json_schema(self.plans.values(), title=self.options.module_name)

    def write_module(self, out_path: str):
        os.makedirs(os.path.dirname(os.path.abspath(out_path)), exist_ok=True)
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(self.module_source())
        logger.info(f"Wrote {len(self.artifacts)} records to {out_path}")


def _error_diagnostic(qualified_name: str, error: GenerationError) -> Diagnostic:
    kind = ERROR_KINDS[type(error)]
    return Diagnostic(kind, Severity.ERROR, error.message, error.location, qualified_name, error.field)


def generate_records(declarations: Iterable[RecordDeclaration],
                     options: Optional[GeneratorOptions] = None) -> GenerationResult:
    """
    Run the whole pipeline over a closed set of declarations.

    Raises:
        DuplicateSymbolError: two declarations share a qualified name; nothing is generated
    """
    options = options or GeneratorOptions()
    progress = logger.info if options.verbose else logger.debug

    registry = SymbolRegistry.from_declarations(declarations)
    resolver = CapabilityResolver(registry)
    flattener = FieldFlattener(registry, resolver, strict_collisions=options.strict_collisions)
    generator = CodecGenerator(registry, resolver, flattener)
    collector = DiagnosticCollector()

    for decl, base in registry.unresolved_references():
        collector.add(Diagnostic(
            DiagnosticKind.UNRESOLVED_BASE, Severity.INFO,
            f"Base '{base.qualified_name}' of '{decl.qualified_name}' is not declared; treated as external",
            base.location if base.location.line else decl.location, decl.qualified_name))

    def plan_one(decl: RecordDeclaration):
        qname = decl.qualified_name
        try:
            if not resolver.is_capable(qname):
                progress(f"Skipping {qname}: not reflectable")
                return None
            collector.extend(flattener.flatten_with_diagnostics(qname)[1])
            plan = generator.plan_record(qname)
            progress(f"Planned {qname}: {[f.name for f in plan.fields]}")
            return plan
        except RECORD_ERRORS as err:
            logger.debug(f"Planning {qname} failed: {err.message}")
            return err

    decls = registry.declarations()
    if options.max_workers > 1:
        with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
            outcomes = list(pool.map(plan_one, decls))
    else:
        outcomes = [plan_one(d) for d in decls]

    plans: Dict[str, RecordPlan] = {}
    failed: Dict[str, GenerationError] = {}
    for decl, outcome in zip(decls, outcomes):
        if isinstance(outcome, GenerationError):
            failed[decl.qualified_name] = outcome
        elif outcome is not None:
            plans[decl.qualified_name] = outcome

    # A record calling into a record that was not generated would be broken code: fail it too.
    while True:
        snapshot = set(failed)
        newly_failed = {}
        for qname, plan in plans.items():
            missing = [r for r in plan.references if r in snapshot]
            if missing:
                newly_failed[qname] = NonSerializableFieldTypeError(
                    f"Record '{qname}' uses record '{missing[0]}', which could not be generated",
                    qname, plan.decl.location)
        if not newly_failed:
            break
        for qname, err in newly_failed.items():
            del plans[qname]
            failed[qname] = err

    for qname, err in failed.items():
        collector.add(_error_diagnostic(qname, err))

    artifacts: Dict[str, str] = {}
    for decl in decls:
        plan = plans.get(decl.qualified_name)
        if plan is not None:
            artifacts[decl.qualified_name] = generator.render_record(plan)

    result = GenerationResult(options, artifacts, plans, failed, collector.sorted())
    logger.info(f"Generated {len(artifacts)} of {len(decls)} records, {len(failed)} failed, "
                f"{len(result.diagnostics)} diagnostics")
    return result

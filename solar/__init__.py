from solar.solar_runtime import ScriptRunner, ExecutionResult, StdLib
from solar.solar_interpreter import Evaluator, FunctionRegistry
from solar.solar_stack import Stack

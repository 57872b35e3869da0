# Federation pipeline: validation, MRF policies, side effects and the outbound queue
from fedmrf.federation.types import *
from fedmrf.federation.pipeline import LocalAction, Pipeline, PipelineContext
from fedmrf.federation.producer import FederationProducer
